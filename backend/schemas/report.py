from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from errors import ValidationError

REQUIRED_FIELDS = (
    "studentName",
    "studentId",
    "course",
    "semester",
    "institution",
    "supervisor",
    "projectTitle",
    "projectDescription",
    "reportType",
)

OutputFormat = Literal["docx", "pdf", "epub"]


class ReportConfig(BaseModel):
    student_name: str
    student_id: str
    course: str
    semester: str
    institution: str
    supervisor: str
    project_title: str
    project_description: str
    report_type: str
    department: str | None = None
    chapter_count: int | None = Field(default=None, ge=1, le=12)
    sections_per_chapter: int | None = Field(default=None, ge=0, le=8)
    output_format: OutputFormat = "docx"
    target_word_count: int | None = Field(default=None, ge=0)

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "str_strip_whitespace": True,
        "extra": "ignore",
    }

    @property
    def department_name(self) -> str:
        return self.department or f"Department of {self.course}"


class ChapterPlan(BaseModel):
    title: str
    sections: list[str] = []


class SectionContent(BaseModel):
    title: str
    content: str
    word_count: int
    fallback: bool = False


class ChapterContent(BaseModel):
    number: int
    title: str
    sections: list[SectionContent] = []

    @property
    def word_count(self) -> int:
        return sum(section.word_count for section in self.sections)


def _describe_validation_error(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"Invalid field {location}: {first.get('msg', 'invalid value')}"


def parse_report_config(raw: Any) -> ReportConfig:
    """Validate a submission body, reporting the first missing required field by name."""
    if not isinstance(raw, dict):
        raise ValidationError("Request body must be a JSON object")

    for field in REQUIRED_FIELDS:
        value = raw.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"Missing required field: {field}")
        if not isinstance(value, str):
            raise ValidationError(f"Field {field} must be a string")

    try:
        return ReportConfig.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(_describe_validation_error(exc)) from exc
