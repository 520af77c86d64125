from contextlib import asynccontextmanager
from datetime import timedelta
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from app.api.router import api_router
from app.core.config import get_settings
from app.core.telemetry import TelemetryRuntime, setup_api_telemetry
from app.services.repository import get_repository
from app.services.social import build_publishers
from app.tasks.scheduler import TaskRunner

settings = get_settings()
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    runtime_settings = get_settings()
    repository = get_repository()
    runner: TaskRunner | None = None

    if not runtime_settings.database_url:
        logger.warning("JOBBOARD_DATABASE_URL not set; skipping migrations and background tasks")
    else:
        applied = await repository.migrate()
        if applied:
            logger.info("applied migrations: %s", applied)
        if runtime_settings.tasks_enabled:
            publishers = build_publishers(runtime_settings)
            logger.info("social platforms enabled: %s", [publisher.name for publisher in publishers])
            runner = TaskRunner(
                repository,
                publishers,
                interval_seconds=runtime_settings.task_interval_seconds,
                retention=timedelta(days=runtime_settings.job_retention_days),
            )
            runner.start()

    try:
        yield
    finally:
        if runner is not None:
            await runner.stop()
        if _telemetry_runtime is not None:
            _telemetry_runtime.shutdown()
        await repository.close()
        get_repository.cache_clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
_telemetry_runtime = setup_api_telemetry(app, settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)
