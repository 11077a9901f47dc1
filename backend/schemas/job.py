from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from schemas.report import ReportConfig


class JobPhase(str, Enum):
    ANALYZING = "analyzing"
    PLANNING = "planning"
    GENERATING = "generating"
    FORMATTING = "formatting"
    COMPLETED = "completed"
    FAILED = "failed"


# Success path, in order. FAILED is reachable from any non-terminal phase.
PHASE_ORDER = [
    JobPhase.ANALYZING,
    JobPhase.PLANNING,
    JobPhase.GENERATING,
    JobPhase.FORMATTING,
    JobPhase.COMPLETED,
]
TERMINAL_PHASES = frozenset({JobPhase.COMPLETED, JobPhase.FAILED})


class PhaseDetail(BaseModel):
    started_at: datetime | None = None
    completed_at: datetime | None = None
    completed: bool = False
    notes: list[str] = []

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class Artifact(BaseModel):
    content: bytes
    filename: str
    media_type: str

    @property
    def size(self) -> int:
        return len(self.content)


class Job(BaseModel):
    id: str
    config: ReportConfig
    phase: JobPhase = JobPhase.ANALYZING
    percentage: int = 0
    current_label: str = "Queued"
    current_chapter: int = 0
    total_chapters: int = 0
    words_generated: int = 0
    estimated_seconds_remaining: float | None = None
    phase_details: dict[JobPhase, PhaseDetail] = Field(default_factory=dict)
    error: str | None = None
    artifact: Artifact | None = None
    created_at: datetime
    last_updated: datetime

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


class JobStatusRead(BaseModel):
    job_id: str
    phase: JobPhase
    percentage: int
    current_label: str
    current_chapter: int
    total_chapters: int
    words_generated: int
    estimated_seconds_remaining: float | None
    phase_details: dict[JobPhase, PhaseDetail]
    error: str | None
    is_complete: bool
    is_failed: bool
    is_terminal: bool
    download_url: str | None = None
    created_at: datetime
    last_updated: datetime

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    @classmethod
    def from_job(cls, job: Job, download_url: str | None = None) -> "JobStatusRead":
        is_complete = job.phase == JobPhase.COMPLETED
        return cls(
            job_id=job.id,
            phase=job.phase,
            percentage=job.percentage,
            current_label=job.current_label,
            current_chapter=job.current_chapter,
            total_chapters=job.total_chapters,
            words_generated=job.words_generated,
            estimated_seconds_remaining=job.estimated_seconds_remaining,
            phase_details=job.phase_details,
            error=job.error,
            is_complete=is_complete,
            is_failed=job.phase == JobPhase.FAILED,
            is_terminal=job.is_terminal,
            download_url=download_url if is_complete else None,
            created_at=job.created_at,
            last_updated=job.last_updated,
        )


class SubmitResponse(BaseModel):
    job_id: str
    status_url: str
    message: str = "Report generation started"

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
