import json
import logging
from uuid import UUID

from observability import (
    JsonFormatter,
    normalize_request_id,
    reset_request_id,
    sanitize_for_logging,
    set_request_id,
)


def test_normalize_request_id_keeps_safe_values_and_replaces_others() -> None:
    assert normalize_request_id("demo-request-123") == "demo-request-123"
    UUID(normalize_request_id(None))
    UUID(normalize_request_id("bad id with spaces"))


def test_sanitize_for_logging_redacts_student_details_and_secrets() -> None:
    payload = {
        "studentName": "Jane Doe",
        "student_id": "S1234567",
        "api_key": "plain-value",
        "projectTitle": "Smart Library",
        "notes": "mail jane@example.org, Bearer abc123, key sk-ant-abcdefghijkl",
        "artifact": b"\x00\x01\x02",
        "nested": [{"token": "x"}],
    }
    sanitized = sanitize_for_logging(payload)

    assert sanitized["studentName"] == "[REDACTED]"
    assert sanitized["student_id"] == "[REDACTED]"
    assert sanitized["api_key"] == "[REDACTED]"
    assert sanitized["projectTitle"] == "Smart Library"
    assert "jane@example.org" not in sanitized["notes"]
    assert "[REDACTED_EMAIL]" in sanitized["notes"]
    assert "Bearer [REDACTED]" in sanitized["notes"]
    assert "[REDACTED_API_KEY]" in sanitized["notes"]
    assert sanitized["artifact"] == "[3 bytes]"
    assert sanitized["nested"] == [{"token": "[REDACTED]"}]


def test_long_strings_are_truncated() -> None:
    assert sanitize_for_logging("x" * 20, max_string_length=5) == "xxxxx...[truncated]"


def test_json_formatter_includes_request_id_and_extras() -> None:
    token = set_request_id("req-42")
    try:
        record = logging.LogRecord("report_builder.api", logging.INFO, __file__, 1, "request_completed", None, None)
        record.event = "request_completed"
        record.query = {"studentName": "Jane Doe"}
        payload = json.loads(JsonFormatter().format(record))
    finally:
        reset_request_id(token)

    assert payload["message"] == "request_completed"
    assert payload["request_id"] == "req-42"
    assert payload["event"] == "request_completed"
    assert payload["query"] == {"studentName": "[REDACTED]"}
