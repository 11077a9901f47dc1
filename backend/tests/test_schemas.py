import pytest

from errors import ValidationError
from schemas.job import JobPhase, JobStatusRead
from schemas.report import REQUIRED_FIELDS, parse_report_config
from services.progress import new_job
from services.text_splitter import clean_generated_text, is_numbered_heading, split_into_lines


def test_parse_accepts_camel_case_and_defaults(submission) -> None:
    submission["chapterCount"] = 4
    config = parse_report_config(submission)
    assert config.student_name == "Jane Doe"
    assert config.chapter_count == 4
    assert config.sections_per_chapter is None
    assert config.output_format == "docx"
    assert config.department_name == "Department of Computer Science"


@pytest.mark.parametrize("field", REQUIRED_FIELDS)
def test_each_required_field_is_named_when_missing(submission, field) -> None:
    del submission[field]
    with pytest.raises(ValidationError) as exc_info:
        parse_report_config(submission)
    assert exc_info.value.message == f"Missing required field: {field}"
    assert exc_info.value.status_code == 400


def test_first_missing_field_wins(submission) -> None:
    del submission["course"]
    del submission["studentId"]
    with pytest.raises(ValidationError, match="Missing required field: studentId"):
        parse_report_config(submission)


def test_non_string_field_is_rejected(submission) -> None:
    submission["semester"] = 2025
    with pytest.raises(ValidationError, match="Field semester must be a string"):
        parse_report_config(submission)


def test_out_of_range_option_is_rejected(submission) -> None:
    submission["chapterCount"] = 40
    with pytest.raises(ValidationError, match="Invalid field chapterCount"):
        parse_report_config(submission)


def test_status_view_uses_camel_case_keys(report_config) -> None:
    job = new_job("job-1", report_config)
    payload = JobStatusRead.from_job(job, download_url="/download?id=job-1").model_dump(
        mode="json", by_alias=True
    )
    assert payload["jobId"] == "job-1"
    assert payload["phase"] == "analyzing"
    assert payload["isComplete"] is False
    assert payload["downloadUrl"] is None
    assert set(payload["phaseDetails"]) == {"analyzing", "planning", "generating", "formatting"}
    assert "startedAt" in payload["phaseDetails"][JobPhase.ANALYZING.value]


def test_text_helpers() -> None:
    assert split_into_lines("one\n\n  two  \n\nthree\n") == ["one", "two", "three"]
    assert is_numbered_heading("2.3 Related Work")
    assert not is_numbered_heading("2.3 is a number that begins a long sentence about many different things here today")
    assert clean_generated_text("CHAPTER 2: DESIGN\n# Overview\n__Plain__ text") == "Overview\nPlain text"
