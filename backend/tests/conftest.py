import asyncio
import threading

import pytest

from schemas.job import Artifact
from schemas.report import ChapterContent, ChapterPlan, ReportConfig, SectionContent

SUBMISSION = {
    "studentName": "Jane Doe",
    "studentId": "S1234567",
    "course": "Computer Science",
    "semester": "Fall 2025",
    "institution": "State University",
    "supervisor": "Dr. Smith",
    "projectTitle": "Smart Library",
    "projectDescription": "A web app for managing library loans and reservations.",
    "reportType": "Project Report",
}


class FakeRenderer:
    """Deterministic content source. ``gate`` holds every section until it is set."""

    def __init__(self, plan: list[ChapterPlan] | None = None, *, gate: threading.Event | None = None):
        self.plan = plan if plan is not None else [
            ChapterPlan(title="INTRODUCTION", sections=["Background", "Objectives"]),
            ChapterPlan(title="CONCLUSION", sections=["Summary", "Future Work"]),
        ]
        self.gate = gate
        self.sections_written: list[str] = []

    async def plan_chapters(self, config: ReportConfig) -> list[ChapterPlan]:
        return [chapter.model_copy(deep=True) for chapter in self.plan]

    async def write_section(
        self,
        config: ReportConfig,
        chapter: ChapterPlan,
        chapter_number: int,
        section_title: str,
        section_number: int,
    ) -> SectionContent:
        if self.gate is not None:
            while not self.gate.is_set():
                await asyncio.sleep(0.01)
        self.sections_written.append(f"{chapter_number}.{section_number}")
        content = f"{section_title} of {config.project_title} explained in a few words."
        return SectionContent(title=section_title, content=content, word_count=len(content.split()))


class FakeBuilder:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.built: list[list[ChapterContent]] = []

    def build(self, config: ReportConfig, chapters: list[ChapterContent]) -> Artifact:
        if self.error is not None:
            raise self.error
        self.built.append(chapters)
        return Artifact(
            content=b"PK fake report document",
            filename="Jane_Doe_Smart_Library_Report.docx",
            media_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        )


@pytest.fixture
def submission() -> dict[str, str]:
    return dict(SUBMISSION)


@pytest.fixture
def report_config() -> ReportConfig:
    return ReportConfig.model_validate(SUBMISSION)
