import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from config import settings
from database import create_engine, create_session_factory, init_db
from errors import ReportServiceError
from observability import (
    configure_logging,
    normalize_request_id,
    reset_request_id,
    sanitize_for_logging,
    set_request_id,
)
from routers import reports
from services.claude import ClaudeContentRenderer
from services.exporter import ReportDocumentBuilder
from services.job_store import InMemoryJobStore, JobStore, SqlJobStore
from services.pipeline import ContentRenderer, DocumentBuilder
from services.runner import JobRunner

logger = logging.getLogger("report_builder.api")


async def _build_job_store():
    """Store selected by JOB_STORE, plus the engine to dispose of on shutdown (if any)."""
    backend = settings.JOB_STORE.strip().lower()
    if backend == "memory":
        return InMemoryJobStore(), None
    if backend == "sql":
        engine = create_engine(settings.DATABASE_URL)
        await init_db(engine)
        store = SqlJobStore(create_session_factory(engine))
        interrupted = await store.fail_interrupted_jobs()
        if interrupted:
            logger.warning("Marked %d interrupted report jobs as failed", interrupted)
        return store, engine
    raise RuntimeError(f"Invalid JOB_STORE: {settings.JOB_STORE!r} (expected 'memory' or 'sql')")


def create_app(
    *,
    job_store: JobStore | None = None,
    renderer: ContentRenderer | None = None,
    builder: DocumentBuilder | None = None,
    retention_seconds: float | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        engine = None
        store = job_store
        if store is None:
            store, engine = await _build_job_store()
        runner = JobRunner(
            store,
            renderer or ClaudeContentRenderer(),
            builder or ReportDocumentBuilder(),
            retention_seconds=retention_seconds,
        )
        app.state.job_store = store
        app.state.job_runner = runner
        logger.info("application_startup", extra={"event": "application_startup", "environment": settings.ENVIRONMENT})
        yield
        await runner.shutdown()
        if engine is not None:
            await engine.dispose()
        logger.info("application_shutdown", extra={"event": "application_shutdown"})

    app = FastAPI(title="Report Builder", lifespan=lifespan)

    @app.exception_handler(ReportServiceError)
    async def report_error_handler(request: Request, exc: ReportServiceError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "request_rejected",
            extra={"event": "request_rejected", "path": request.url.path, "status_code": exc.status_code, "reason": exc.message},
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = normalize_request_id(request.headers.get(settings.REQUEST_ID_HEADER))
        token = set_request_id(request_id)
        started = time.perf_counter()
        try:
            if request.method == "OPTIONS":
                response = Response(status_code=200)
            else:
                logger.info(
                    "request_started",
                    extra={
                        "event": "request_started",
                        "method": request.method,
                        "path": request.url.path,
                        "query": sanitize_for_logging(dict(request.query_params)),
                    },
                )
                response = await call_next(request)
                logger.info(
                    "request_completed",
                    extra={
                        "event": "request_completed",
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    },
                )
            response.headers[settings.REQUEST_ID_HEADER] = request_id
            return response
        except Exception:
            logger.exception(
                "request_failed",
                extra={
                    "event": "request_failed",
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            raise
        finally:
            reset_request_id(token)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", settings.REQUEST_ID_HEADER],
    )

    app.include_router(reports.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
