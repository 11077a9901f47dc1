"""
Progress bookkeeping for report jobs.

The pipeline only says "phase X, Y percent, doing Z"; everything else a poller
sees (time estimate, per-phase start/end stamps, completion flags) is derived
here. Functions return a new Job and never touch storage.

Rules:
- Percentage is clamped to [0, 100] and never moves backwards while the job
  is running.
- Phases never move backwards along the success path.
- A phase is complete once percentage reaches its threshold; crossing it
  stamps that phase's end and the next phase's start.
- Terminal jobs (completed/failed) are returned unchanged.
"""

import logging
from datetime import datetime, timezone

from config import settings
from schemas.job import Artifact, Job, JobPhase, PhaseDetail, PHASE_ORDER
from schemas.report import ReportConfig

logger = logging.getLogger(__name__)

PHASE_THRESHOLDS: dict[JobPhase, int] = {
    JobPhase.ANALYZING: 15,
    JobPhase.PLANNING: 25,
    JobPhase.GENERATING: 90,
    JobPhase.FORMATTING: 100,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def estimate_seconds_remaining(percentage: int, seconds_per_percent: float | None = None) -> float:
    rate = settings.SECONDS_PER_PERCENT if seconds_per_percent is None else seconds_per_percent
    remaining = 100 - max(0, min(100, percentage))
    return round(remaining * rate, 1)


def new_job(
    job_id: str,
    config: ReportConfig,
    *,
    now: datetime | None = None,
    seconds_per_percent: float | None = None,
) -> Job:
    """Initial record for a freshly submitted report: analyzing, 0%."""
    now = now or _utc_now()
    phase_details = {phase: PhaseDetail() for phase in PHASE_THRESHOLDS}
    phase_details[JobPhase.ANALYZING].started_at = now
    return Job(
        id=job_id,
        config=config,
        current_label="Queued for analysis",
        estimated_seconds_remaining=estimate_seconds_remaining(0, seconds_per_percent),
        phase_details=phase_details,
        created_at=now,
        last_updated=now,
    )


def _next_phase(phase: JobPhase) -> JobPhase | None:
    idx = PHASE_ORDER.index(phase)
    if idx + 1 < len(PHASE_ORDER):
        return PHASE_ORDER[idx + 1]
    return None


def _stamp_phase_details(job: Job, phase: JobPhase, now: datetime, details: str | None) -> None:
    for tracked in PHASE_THRESHOLDS:
        job.phase_details.setdefault(tracked, PhaseDetail())

    current = job.phase_details.get(phase)
    if current is not None and current.started_at is None:
        current.started_at = now

    for tracked, threshold in PHASE_THRESHOLDS.items():
        detail = job.phase_details[tracked]
        if detail.completed or job.percentage < threshold:
            continue
        detail.completed = True
        detail.completed_at = now
        if detail.started_at is None:
            detail.started_at = now
        following = _next_phase(tracked)
        if following in job.phase_details and job.phase_details[following].started_at is None:
            job.phase_details[following].started_at = now

    if details and current is not None:
        current.notes.append(details)


def advance(
    job: Job,
    phase: JobPhase | str,
    percentage: int | float,
    label: str,
    *,
    words_generated: int | None = None,
    current_chapter: int | None = None,
    total_chapters: int | None = None,
    details: str | None = None,
    error: str | None = None,
    artifact: Artifact | None = None,
    now: datetime | None = None,
    seconds_per_percent: float | None = None,
) -> Job:
    """Return ``job`` moved to ``phase`` at ``percentage`` with derived fields recomputed."""
    if job.is_terminal:
        logger.debug("Ignoring progress update for finished job %s (%s)", job.id, job.phase.value)
        return job

    phase = JobPhase(phase)
    now = now or _utc_now()
    updated = job.model_copy(deep=True)
    updated.current_label = label
    updated.last_updated = now

    if phase == JobPhase.FAILED:
        if not error:
            raise ValueError("A failed transition requires an error message")
        updated.phase = JobPhase.FAILED
        updated.error = error
        updated.estimated_seconds_remaining = 0.0
        current = updated.phase_details.get(job.phase)
        if current is not None and details:
            current.notes.append(details)
        return updated

    if phase == JobPhase.COMPLETED:
        if artifact is None:
            raise ValueError("A completed transition requires an artifact")
        updated.artifact = artifact
        percentage = 100
    elif PHASE_ORDER.index(phase) < PHASE_ORDER.index(job.phase):
        logger.warning(
            "Job %s asked to move back from %s to %s; keeping current phase",
            job.id, job.phase.value, phase.value,
        )
        phase = job.phase

    clamped = max(0, min(100, int(round(percentage))))
    updated.phase = phase
    updated.percentage = max(job.percentage, clamped)

    if words_generated is not None:
        updated.words_generated = max(job.words_generated, words_generated)
    if current_chapter is not None:
        updated.current_chapter = current_chapter
    if total_chapters is not None:
        updated.total_chapters = total_chapters

    _stamp_phase_details(updated, phase, now, details)

    if phase == JobPhase.COMPLETED:
        updated.estimated_seconds_remaining = 0.0
    else:
        updated.estimated_seconds_remaining = estimate_seconds_remaining(
            updated.percentage, seconds_per_percent
        )
    return updated


def mark_completed(job: Job, artifact: Artifact, label: str = "Report completed! Ready for download.") -> Job:
    return advance(job, JobPhase.COMPLETED, 100, label, artifact=artifact)


def mark_failed(job: Job, error: str) -> Job:
    return advance(job, JobPhase.FAILED, job.percentage, f"Error: {error}", error=error)
