"""Background task supervision for report jobs and post-download cleanup."""
import asyncio
import logging

from config import settings
from schemas.report import ReportConfig
from services.job_store import JobStore
from services.pipeline import ContentRenderer, DocumentBuilder, run_report_job

logger = logging.getLogger(__name__)


class JobRunner:
    """Runs one pipeline task per job and deletes downloaded jobs after a grace period.

    Handles are kept until their task finishes so that shutdown can cancel them
    and so that a job is never started twice.
    """

    def __init__(
        self,
        store: JobStore,
        renderer: ContentRenderer,
        builder: DocumentBuilder,
        *,
        retention_seconds: float | None = None,
    ):
        self.store = store
        self.renderer = renderer
        self.builder = builder
        self.retention_seconds = (
            settings.DOWNLOAD_RETENTION_SECONDS if retention_seconds is None else retention_seconds
        )
        self._tasks: dict[str, asyncio.Task] = {}
        self._cleanups: dict[str, asyncio.Task] = {}

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def is_running(self, job_id: str) -> bool:
        return job_id in self._tasks

    def submit(self, job_id: str, config: ReportConfig) -> asyncio.Task:
        existing = self._tasks.get(job_id)
        if existing is not None:
            return existing

        task = asyncio.create_task(
            run_report_job(
                job_id, config, store=self.store, renderer=self.renderer, builder=self.builder
            ),
            name=f"report-job-{job_id}",
        )
        self._tasks[job_id] = task
        task.add_done_callback(lambda t: self._on_job_done(job_id, t))
        logger.info("Started report job %s (%d running)", job_id, len(self._tasks))
        return task

    def _on_job_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            logger.warning("Report job %s was cancelled", job_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Report job %s crashed: %s", job_id, exc, exc_info=exc)

    def schedule_cleanup(self, job_id: str, delay: float | None = None) -> bool:
        """Delete the job after ``delay`` seconds. False if a cleanup is already pending."""
        if job_id in self._cleanups:
            return False
        delay = self.retention_seconds if delay is None else delay
        task = asyncio.create_task(self._delete_later(job_id, delay), name=f"report-cleanup-{job_id}")
        self._cleanups[job_id] = task
        task.add_done_callback(lambda t: self._on_cleanup_done(job_id, t))
        return True

    def _on_cleanup_done(self, job_id: str, task: asyncio.Task) -> None:
        self._cleanups.pop(job_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Cleanup of report job %s failed: %s", job_id, task.exception())

    async def _delete_later(self, job_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.store.delete(job_id)
        logger.info("Removed downloaded report job %s", job_id)

    async def join(self, job_id: str) -> None:
        """Wait for a job's pipeline task, if one is running."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        pending = list(self._tasks.values()) + list(self._cleanups.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("Cancelled %d background report tasks", len(pending))
