"""Report submission, status polling and download endpoints."""
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from errors import ArtifactMissingError, NotFoundError, NotReadyError, ValidationError
from schemas.job import Job, JobPhase, JobStatusRead, SubmitResponse
from schemas.report import parse_report_config
from services.exporter import sanitize_download_filename
from services.job_store import JobStore
from services.runner import JobRunner

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])

NO_CACHE = "no-cache, no-store, must-revalidate"


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


def get_job_runner(request: Request) -> JobRunner:
    return request.app.state.job_runner


async def _get_job(store: JobStore, job_id: str | None) -> Job:
    if not job_id or not job_id.strip():
        raise ValidationError("Report ID is required")
    job = await store.get(job_id.strip())
    if job is None:
        raise NotFoundError()
    return job


@router.post("/submit", response_model=SubmitResponse)
async def submit_report(
    request: Request,
    store: JobStore = Depends(get_job_store),
    runner: JobRunner = Depends(get_job_runner),
):
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body must be a JSON object")
    config = parse_report_config(payload)

    job_id = await store.create(config)
    runner.submit(job_id, config)
    logger.info("Accepted %s report job %s", config.output_format, job_id)

    status_path = request.app.url_path_for("get_report_status")
    return SubmitResponse(job_id=job_id, status_url=f"{status_path}?id={job_id}")


@router.get("/status", response_model=JobStatusRead)
async def get_report_status(
    request: Request,
    response: Response,
    job_id: str | None = Query(default=None, alias="id"),
    store: JobStore = Depends(get_job_store),
):
    job = await _get_job(store, job_id)
    response.headers["Cache-Control"] = NO_CACHE
    download_path = request.app.url_path_for("download_report")
    return JobStatusRead.from_job(job, download_url=f"{download_path}?id={job.id}")


@router.get("/download")
async def download_report(
    job_id: str | None = Query(default=None, alias="id"),
    filename: str | None = Query(default=None),
    store: JobStore = Depends(get_job_store),
    runner: JobRunner = Depends(get_job_runner),
):
    job = await _get_job(store, job_id)
    if job.phase != JobPhase.COMPLETED:
        raise NotReadyError(job.phase.value, job.percentage)
    if job.artifact is None:
        logger.error("Report job %s is completed but has no artifact", job.id)
        raise ArtifactMissingError()

    artifact = job.artifact
    ext = artifact.filename.rsplit(".", 1)[-1]
    download_name = sanitize_download_filename(filename, ext) or artifact.filename

    runner.schedule_cleanup(job.id)
    logger.info("Report downloaded: %s (%d bytes)", job.id, artifact.size)
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{download_name}"',
            "Cache-Control": NO_CACHE,
        },
    )
