"""KHO MVG task service - recurring warehouse project tasks."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.config import settings
from src.core.db_client import DatabaseError, close_connection, init_db
from src.core.errors import TaskLifecycleError
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.scheduler import JOB_NAMES, start_scheduler, stop_scheduler
from src.core.scheduler_tracker import job_tracker
from src.interface.tasks_router import router as tasks_router
from src.interface.tasks_router import task_error_handler


logger = logging.getLogger(__name__)


async def validate_startup_configuration() -> None:
    """Check production credentials and make sure the task store is usable.

    Exits the process with a clear message when it is not.
    """
    logger.info("startup_validation_begin")

    if settings.is_production:
        try:
            settings.require_credential("logfire_token", "Logfire")
        except ValueError as e:
            logger.error("startup_validation_failed", extra={"error": str(e)})
            print(f"\nStartup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
            sys.exit(1)

    try:
        await init_db()
        logger.info("startup_validation", extra={"service": "sqlite", "status": "ok"})
    except DatabaseError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\nStartup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so validation logs are captured
    configure_logfire()

    await validate_startup_configuration()
    logger.info("Database initialized")

    if settings.enable_scheduler:
        start_scheduler()
    yield
    stop_scheduler()
    await close_connection()


app = FastAPI(
    title="khomvg-tasks",
    description="Recurring task scheduling for KHO MVG warehouse projects",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

app.add_exception_handler(TaskLifecycleError, task_error_handler)
app.add_exception_handler(DatabaseError, task_error_handler)

# Register routers
app.include_router(tasks_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    job_statuses = {job_name: await job_tracker.get_job_status(job_name) for job_name in JOB_NAMES}

    dlq = job_tracker.get_dead_letter_queue()

    has_failures = any(job_status["consecutive_failures"] > 0 for job_status in job_statuses.values())
    overall_status = "degraded" if has_failures else "healthy"
    if dlq:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "jobs": job_statuses,
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )
