import asyncio
import threading

from conftest import FakeBuilder, FakeRenderer
from schemas.job import JobPhase
from services.job_store import InMemoryJobStore
from services.runner import JobRunner


def test_submit_runs_job_to_completion(report_config) -> None:
    async def scenario():
        store = InMemoryJobStore()
        runner = JobRunner(store, FakeRenderer(), FakeBuilder(), retention_seconds=60)
        job_id = await store.create(report_config)

        task = runner.submit(job_id, report_config)
        assert runner.submit(job_id, report_config) is task
        assert runner.is_running(job_id)

        await runner.join(job_id)
        await asyncio.sleep(0)
        assert (await store.get(job_id)).phase == JobPhase.COMPLETED
        assert runner.active_jobs == 0

    asyncio.run(scenario())


def test_cleanup_is_scheduled_once_and_deletes_job(report_config) -> None:
    async def scenario():
        store = InMemoryJobStore()
        runner = JobRunner(store, FakeRenderer(), FakeBuilder(), retention_seconds=0.01)
        job_id = await store.create(report_config)

        assert runner.schedule_cleanup(job_id) is True
        assert runner.schedule_cleanup(job_id) is False

        await asyncio.sleep(0.1)
        assert await store.get(job_id) is None
        assert runner.schedule_cleanup(job_id) is True
        await runner.shutdown()

    asyncio.run(scenario())


def test_shutdown_cancels_running_jobs(report_config) -> None:
    async def scenario():
        store = InMemoryJobStore()
        gate = threading.Event()
        runner = JobRunner(store, FakeRenderer(gate=gate), FakeBuilder())
        job_id = await store.create(report_config)
        runner.submit(job_id, report_config)
        await asyncio.sleep(0.05)

        await runner.shutdown()
        await asyncio.sleep(0)
        job = await store.get(job_id)
        assert job.phase == JobPhase.GENERATING
        assert runner.active_jobs == 0

    asyncio.run(scenario())
