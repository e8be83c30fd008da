"""Logfire setup and log helpers for the task service.

Modules log through ``logging.getLogger(__name__)``. Once ``configure_logfire``
has run, those records are shipped to Logfire alongside the request spans from
FastAPI and the ``task_service.*`` spans opened by the service layer.

Lifecycle events carry the task and project they touch, so a single task can be
followed from creation through each completion:
    log_with_task_context(logger, "info", "Completed task", task_id="12", project_id="3")

The daily reminder job emits one ``task_due_reminder`` event per assignee:
    log_with_context(logger, "info", "task_due_reminder", assigned_to="42", task_ids=["12", "15"])
"""

import logging

import logfire
from fastapi import FastAPI

from src.core.config import settings


logger = logging.getLogger(__name__)


def configure_logfire() -> None:
    """Configure Logfire for the current environment.

    Without ``LOGFIRE_TOKEN`` nothing leaves the process, which is the normal
    setup for local runs and tests.
    """
    logfire.configure(
        token=settings.logfire_token,
        service_name="khomvg-tasks",
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured", extra={"environment": settings.environment})


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every request to the task API."""
    logfire.instrument_fastapi(app)
    logger.info("FastAPI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Open a span around one task service operation, named ``<module>.<operation>``."""
    return logfire.span(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """Log ``message`` at ``level`` with ``context`` attached as structured fields.

    Args:
        logger: Logger of the calling module
        level: "debug", "info", "warning", "error" or "critical"
        message: Event name or message
        **context: Fields such as assigned_to, task_ids or job_name
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra=context)


def log_with_task_context(
    logger: logging.Logger,
    level: str,
    message: str,
    task_id: str | None = None,
    project_id: str | None = None,
    **extra: object,
) -> None:
    """Log a lifecycle event tagged with its task and project.

    Ids that are not known yet (a task before insertion) are left out rather
    than logged as None.
    """
    context: dict[str, object] = dict(extra)
    if task_id:
        context["task_id"] = task_id
    if project_id:
        context["project_id"] = project_id
    log_with_context(logger, level, message, **context)
