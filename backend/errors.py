"""Error taxonomy shared by the endpoints, the pipeline and its collaborators."""
from __future__ import annotations

from typing import Any


class ReportServiceError(Exception):
    """Base error rendered to callers as ``{"error": message, **extra}``."""

    status_code = 500

    def __init__(self, message: str, *, extra: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationError(ReportServiceError):
    status_code = 400


class NotFoundError(ReportServiceError):
    status_code = 404

    def __init__(self, message: str = "Report not found"):
        super().__init__(message)


class NotReadyError(ReportServiceError):
    status_code = 400

    def __init__(self, phase: str, percentage: int):
        super().__init__(
            "Report not ready for download",
            extra={"phase": phase, "percentage": percentage},
        )
        self.phase = phase
        self.percentage = percentage


class ArtifactMissingError(ReportServiceError):
    status_code = 500

    def __init__(self, message: str = "Report file not available"):
        super().__init__(message)


class UpstreamError(ReportServiceError):
    """Content generation failed or timed out. Recovered with fallback content."""

    status_code = 502


class BuildError(ReportServiceError):
    """The document builder could not produce an artifact. Fatal to the job."""
