"""Job storage: one record per report job, replaced whole on every update."""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.job import ReportJobRecord
from schemas.job import Artifact, Job, TERMINAL_PHASES
from schemas.report import ReportConfig
from services.progress import mark_failed, new_job

logger = logging.getLogger(__name__)

JobMutator = Callable[[Job], Job]

INTERRUPTED_ERROR = "Interrupted by server restart"


def new_job_id() -> str:
    # Random, but still a bearer token: anyone holding the id can poll and download.
    return str(uuid.uuid4())


class JobStore(Protocol):
    async def create(self, config: ReportConfig) -> str: ...

    async def get(self, job_id: str) -> Job | None: ...

    async def update(self, job_id: str, mutator: JobMutator) -> Job | None: ...

    async def delete(self, job_id: str) -> None: ...


class InMemoryJobStore:
    """Process-lifetime store. Records are snapshots; updates swap in a new one."""

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._jobs)

    async def create(self, config: ReportConfig) -> str:
        job_id = new_job_id()
        while job_id in self._jobs:
            job_id = new_job_id()
        self._jobs[job_id] = new_job(job_id, config)
        return job_id

    async def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    async def update(self, job_id: str, mutator: JobMutator) -> Job | None:
        async with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                return None
            updated = mutator(current.model_copy(deep=True))
            self._jobs[job_id] = updated
            return updated

    async def delete(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)


def _record_state(job: Job) -> dict:
    state = job.model_dump(mode="json", exclude={"artifact"})
    if job.artifact is not None:
        state["artifact_meta"] = {
            "filename": job.artifact.filename,
            "media_type": job.artifact.media_type,
        }
    return state


def _job_from_record(record: ReportJobRecord) -> Job:
    state = dict(record.state)
    meta = state.pop("artifact_meta", None)
    if meta and record.artifact_content is not None:
        state["artifact"] = Artifact(content=record.artifact_content, **meta)
    return Job.model_validate(state)


def _apply_to_record(record: ReportJobRecord, job: Job) -> None:
    record.phase = job.phase.value
    record.percentage = job.percentage
    record.state = _record_state(job)
    record.artifact_content = job.artifact.content if job.artifact is not None else None
    record.updated_at = datetime.now(timezone.utc)


class SqlJobStore:
    """The same contract over a SQLAlchemy database, one row per job."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, config: ReportConfig) -> str:
        async with self._session_factory() as db:
            job_id = new_job_id()
            while await db.get(ReportJobRecord, job_id) is not None:
                job_id = new_job_id()
            job = new_job(job_id, config)
            record = ReportJobRecord(id=job_id, created_at=job.created_at, state={})
            _apply_to_record(record, job)
            db.add(record)
            await db.commit()
        return job_id

    async def get(self, job_id: str) -> Job | None:
        async with self._session_factory() as db:
            record = await db.get(ReportJobRecord, job_id)
            if record is None:
                return None
            return _job_from_record(record)

    async def update(self, job_id: str, mutator: JobMutator) -> Job | None:
        async with self._session_factory() as db:
            record = await db.get(ReportJobRecord, job_id, with_for_update=True)
            if record is None:
                return None
            updated = mutator(_job_from_record(record))
            _apply_to_record(record, updated)
            await db.commit()
            return updated

    async def delete(self, job_id: str) -> None:
        async with self._session_factory() as db:
            record = await db.get(ReportJobRecord, job_id)
            if record is not None:
                await db.delete(record)
                await db.commit()

    async def fail_interrupted_jobs(self) -> int:
        """Mark jobs a previous process left running as failed. Returns how many."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ReportJobRecord.id).where(
                    ReportJobRecord.phase.not_in([phase.value for phase in TERMINAL_PHASES])
                )
            )
            job_ids = list(result.scalars().all())

        for job_id in job_ids:
            logger.warning("Failing report job %s interrupted by restart", job_id)
            await self.update(job_id, lambda job: mark_failed(job, INTERRUPTED_ERROR))
        return len(job_ids)
