"""Project task REST endpoints.

Responses use the ``{"success": ..., "data": ..., "message": ...}`` envelope
the back-office client expects.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, Request, status
from fastapi.responses import JSONResponse

from src.core.config import constants, settings
from src.core.errors import (
    AlreadyTerminalError,
    InvalidRecurrenceError,
    InvalidTransitionError,
    ScheduleValidationError,
    TaskLifecycleError,
    TaskNotFoundError,
    classify_error_with_response,
)
from src.domain.create_models import CommentCreate, TaskCreate
from src.domain.task import TaskStatus, TaskType
from src.domain.update_models import TaskCompletion, TaskUpdate
from src.modules.tasks import analytics, service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects/{project_id}/tasks", tags=["tasks"])

ProjectId = Annotated[int, Path(gt=0, description="Owning project ID")]

_STATUS_BY_ERROR: dict[type[TaskLifecycleError], int] = {
    ScheduleValidationError: constants.HTTP_BAD_REQUEST,
    TaskNotFoundError: constants.HTTP_NOT_FOUND,
    AlreadyTerminalError: constants.HTTP_CONFLICT,
    InvalidTransitionError: constants.HTTP_CONFLICT,
    InvalidRecurrenceError: constants.HTTP_SERVER_ERROR,
}


async def get_actor(x_user_id: Annotated[str | None, Header()] = None) -> str | None:
    """Acting user ID, forwarded by the authenticating gateway."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


Actor = Annotated[str | None, Depends(get_actor)]


def _ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


async def task_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate lifecycle errors into the client's error envelope."""
    status_code = _STATUS_BY_ERROR.get(type(exc), constants.HTTP_SERVER_ERROR)
    response = classify_error_with_response(exc)

    level = logging.ERROR if status_code >= constants.HTTP_SERVER_ERROR else logging.INFO
    logger.log(
        level,
        "task_request_failed",
        extra={"path": request.url.path, "code": response.code, "error": str(exc)},
    )

    body: dict[str, Any] = {"success": False, "code": response.code, "message": response.message}
    if response.details:
        body["errors"] = response.details
    return JSONResponse(status_code=status_code, content=body)


@router.get("")
async def list_tasks(
    project_id: ProjectId,
    task_status: Annotated[TaskStatus | None, Query(alias="status")] = None,
    task_type: TaskType | None = None,
    assigned_to: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> dict[str, Any]:
    """List a project's tasks with effective statuses."""
    result = await service.list_tasks(
        project_id=str(project_id),
        status=task_status,
        task_type=task_type,
        assigned_to=assigned_to or None,
        page=page,
        limit=min(limit, settings.max_page_size) if limit else None,
    )
    return _ok(result.model_dump(mode="json"))


@router.get("/stats")
async def get_task_stats(project_id: ProjectId) -> dict[str, Any]:
    """Counters by effective status for the dashboard cards."""
    stats = await analytics.get_task_stats(project_id=str(project_id))
    return _ok(stats.model_dump())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(project_id: ProjectId, payload: TaskCreate, actor: Actor) -> dict[str, Any]:
    """Create a task after validating its schedule."""
    task = await service.create_task(project_id=str(project_id), payload=payload, created_by=actor)
    return _ok({"id": task.id, "task": task.model_dump(mode="json")}, "Task created successfully")


@router.get("/{task_id}")
async def get_task(project_id: ProjectId, task_id: str) -> dict[str, Any]:
    """Task detail with comments."""
    detail = await service.get_task(project_id=str(project_id), task_id=task_id)
    return _ok(detail.model_dump(mode="json"))


@router.put("/{task_id}")
async def update_task(project_id: ProjectId, task_id: str, payload: TaskUpdate, actor: Actor) -> dict[str, Any]:
    """Partially update a live task."""
    if not payload.model_fields_set:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    task = await service.update_task(project_id=str(project_id), task_id=task_id, payload=payload, updated_by=actor)
    return _ok(task.model_dump(mode="json"), "Task updated successfully")


@router.patch("/{task_id}/start")
async def start_task(project_id: ProjectId, task_id: str, actor: Actor) -> dict[str, Any]:
    """Mark a pending task as in progress."""
    task = await service.start_task(project_id=str(project_id), task_id=task_id, user_id=actor)
    return _ok(task.model_dump(mode="json"), "Task started")


@router.patch("/{task_id}/complete")
async def complete_task(
    project_id: ProjectId,
    task_id: str,
    actor: Actor,
    payload: TaskCompletion | None = None,
) -> dict[str, Any]:
    """Complete a task; recurring tasks get their next occurrence created."""
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header is required to complete a task",
        )

    outcome = await service.complete_task(
        project_id=str(project_id),
        task_id=task_id,
        completed_by=actor,
        completion_notes=payload.completion_notes if payload else None,
    )
    return _ok(outcome.model_dump(mode="json"), "Task completed successfully")


@router.patch("/{task_id}/cancel")
async def cancel_task(project_id: ProjectId, task_id: str, actor: Actor) -> dict[str, Any]:
    """Cancel a live task."""
    task = await service.cancel_task(project_id=str(project_id), task_id=task_id, user_id=actor)
    return _ok(task.model_dump(mode="json"), "Task cancelled")


@router.delete("/{task_id}")
async def delete_task(project_id: ProjectId, task_id: str, actor: Actor) -> dict[str, Any]:
    """Delete a task."""
    await service.delete_task(project_id=str(project_id), task_id=task_id, user_id=actor)
    return _ok(message="Task deleted successfully")


@router.get("/{task_id}/history")
async def get_task_history(project_id: ProjectId, task_id: str) -> dict[str, Any]:
    """Audit trail of a task."""
    entries = await service.get_history(project_id=str(project_id), task_id=task_id)
    return _ok([entry.model_dump(mode="json") for entry in entries])


@router.post("/{task_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(project_id: ProjectId, task_id: str, payload: CommentCreate, actor: Actor) -> dict[str, Any]:
    """Comment on a task."""
    comment = await service.add_comment(project_id=str(project_id), task_id=task_id, payload=payload, user_id=actor)
    return _ok(comment.model_dump(mode="json"), "Comment added")
