"""Task service for CRUD operations and lifecycle transitions.

Every read applies the lifecycle engine so that stale ``pending`` or
``in_progress`` rows are presented as overdue, and every mutation is recorded
in ``task_history``.
"""

import json
import logging
import math
from datetime import UTC, date, datetime
from typing import Any

from src.core import db_client
from src.core.config import constants, settings
from src.core.db_client import RecordNotFoundError, sanitize_param
from src.core.errors import AlreadyTerminalError, InvalidTransitionError, TaskNotFoundError
from src.core.logging import log_with_task_context, span
from src.domain.create_models import CommentCreate, TaskCreate
from src.domain.log import TaskAction, TaskComment, TaskHistoryEntry
from src.domain.task import PRIORITY_RANK, Task, TaskStatus, TaskType, TaskView
from src.domain.update_models import TaskUpdate
from src.models.service_models import CompletionOutcome, Pagination, TaskDetail, TaskPage
from src.modules.tasks import engine


logger = logging.getLogger(__name__)

TASKS = "project_tasks"
COMMENTS = "task_comments"
HISTORY = "task_history"

# Guard applied to every lifecycle write so a concurrent completion/cancel wins
LIVE_FILTER = f'status != "{TaskStatus.COMPLETED}" && status != "{TaskStatus.CANCELLED}"'


def _now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def to_task(record: dict[str, Any]) -> Task:
    """Build a Task from a database record."""
    return Task.model_validate(record)


def to_view(task: Task, today: date | None = None) -> TaskView:
    """Attach the derived status fields the UI renders."""
    return TaskView(
        **task.model_dump(),
        effective_status=engine.compute_effective_status(task, today),
        days_until_due=engine.days_until_due(task, today),
        is_due_soon=engine.is_due_soon(task, today),
    )


def _task_row(task: Task) -> dict[str, Any]:
    """Serialize a Task into column values, leaving out unset bookkeeping fields."""
    row = task.model_dump(mode="json", exclude={"id", "created", "updated"})
    return {key: value for key, value in row.items() if value is not None}


async def _write_history(
    *,
    task_id: str,
    user_id: str | None,
    action: TaskAction,
    old_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
) -> None:
    data: dict[str, Any] = {"task_id": task_id, "action": action.value, "created": _now_iso()}
    if user_id:
        data["user_id"] = user_id
    if old_value is not None:
        data["old_value"] = json.dumps(old_value, default=str)
    if new_value is not None:
        data["new_value"] = json.dumps(new_value, default=str)
    await db_client.create_record(collection=HISTORY, data=data)


async def _load_task(*, project_id: str, task_id: str) -> Task:
    """Fetch a task and make sure it belongs to the project."""
    try:
        record = await db_client.get_record(collection=TASKS, record_id=task_id)
    except RecordNotFoundError as e:
        raise TaskNotFoundError(task_id, project_id) from e

    task = to_task(record)
    if task.project_id != str(project_id):
        raise TaskNotFoundError(task_id, project_id)
    return task


async def fetch_tasks(*, filter_query: str = "") -> list[Task]:
    """Fetch every task matching a filter, page by page."""
    tasks: list[Task] = []
    page = 1
    page_size = constants.REMINDER_SCAN_PAGE_SIZE
    while True:
        records = await db_client.list_records(
            collection=TASKS,
            page=page,
            per_page=page_size,
            filter_query=filter_query,
            sort="+id",
        )
        tasks.extend(to_task(record) for record in records)
        if len(records) < page_size:
            return tasks
        page += 1


async def create_task(
    *,
    project_id: str,
    payload: TaskCreate,
    created_by: str | None = None,
    today: date | None = None,
) -> TaskView:
    """Create a new task occurrence in ``pending`` state.

    Raises:
        ScheduleValidationError: If the schedule breaks any rule
    """
    with span("task_service.create_task"):
        engine.validate_schedule(payload.model_dump())

        task = Task(
            **payload.model_dump(),
            project_id=str(project_id),
            status=TaskStatus.PENDING,
            created_by=created_by,
            updated_by=created_by,
        )
        now = _now_iso()
        async with db_client.transaction():
            record = await db_client.create_record(
                collection=TASKS,
                data={**_task_row(task), "created": now, "updated": now},
            )
            created = to_task(record)

            await _write_history(
                task_id=created.id or "",
                user_id=created_by,
                action=TaskAction.CREATED,
                new_value={"title": created.title, "task_type": created.task_type, "priority": created.priority},
            )
        log_with_task_context(
            logger, "info", "Created task", task_id=created.id, project_id=created.project_id, title=created.title
        )
        return to_view(created, today)


async def get_task(*, project_id: str, task_id: str, today: date | None = None) -> TaskDetail:
    """Get a task with its comments.

    Raises:
        TaskNotFoundError: If the task does not exist in the project
    """
    with span("task_service.get_task"):
        task = await _load_task(project_id=project_id, task_id=task_id)
        comments = await list_comments(task_id=task_id)
        return TaskDetail(task=to_view(task, today), comments=comments)


async def list_tasks(
    *,
    project_id: str,
    status: TaskStatus | None = None,
    task_type: TaskType | None = None,
    assigned_to: str | None = None,
    page: int = 1,
    limit: int | None = None,
    today: date | None = None,
) -> TaskPage:
    """List a project's tasks, highest priority first, then soonest due.

    The ``status`` filter matches the effective status, so ``overdue`` selects
    stale pending and in-progress rows.
    """
    with span("task_service.list_tasks"):
        page = max(page, 1)
        limit = min(max(limit or settings.default_page_size, 1), settings.max_page_size)

        filters = [f'project_id = "{sanitize_param(project_id)}"']
        if task_type:
            filters.append(f'task_type = "{sanitize_param(task_type)}"')
        if assigned_to:
            filters.append(f'assigned_to = "{sanitize_param(assigned_to)}"')

        views = [to_view(task, today) for task in await fetch_tasks(filter_query=" && ".join(filters))]
        if status:
            views = [view for view in views if view.effective_status == status]

        views.sort(key=lambda v: (-PRIORITY_RANK[v.priority], v.due_date, int(v.id or 0)))

        total = len(views)
        start = (page - 1) * limit
        logger.debug("Listed %d tasks for project %s", total, project_id)

        return TaskPage(
            tasks=views[start : start + limit],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )


async def _persist_transition(
    *,
    current: Task,
    updated: Task,
    changes: dict[str, Any],
    user_id: str | None,
    action: TaskAction,
    history_value: dict[str, Any] | None = None,
) -> Task:
    """Write a lifecycle change, refusing it if the row went terminal meanwhile."""
    data = {**changes, "updated_by": user_id, "updated": _now_iso()}
    async with db_client.transaction():
        record = await db_client.update_record(
            collection=TASKS,
            record_id=current.id or "",
            data=data,
            filter_query=LIVE_FILTER,
        )
        if record is None:
            latest = await db_client.get_record(collection=TASKS, record_id=current.id or "")
            raise AlreadyTerminalError(current.id, latest["status"])

        await _write_history(
            task_id=current.id or "",
            user_id=user_id,
            action=action,
            old_value=current.model_dump(mode="json"),
            new_value=history_value if history_value is not None else updated.model_dump(mode="json", include=set(changes)),
        )
    return to_task(record)


async def update_task(
    *,
    project_id: str,
    task_id: str,
    payload: TaskUpdate,
    updated_by: str | None = None,
    today: date | None = None,
) -> TaskView:
    """Apply a partial edit to a live task.

    A ``status`` change is routed through the state machine; ``completed`` must
    go through :func:`complete_task` and ``overdue`` is never stored.

    Raises:
        TaskNotFoundError: If the task does not exist in the project
        AlreadyTerminalError: If the task is completed or cancelled
        InvalidTransitionError: For a status change the state machine refuses
        ScheduleValidationError: If the edited schedule breaks any rule
    """
    with span("task_service.update_task"):
        current = await _load_task(project_id=project_id, task_id=task_id)
        if current.is_terminal:
            raise AlreadyTerminalError(current.id, current.status)

        # Only the assignee may be cleared; a null for any other field means "unchanged"
        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key == "assigned_to"
        }
        new_status = changes.pop("status", None)
        updated = current

        if new_status is not None and new_status != current.status:
            if new_status == TaskStatus.OVERDUE:
                msg = "Overdue is derived from the due date and cannot be set"
                raise InvalidTransitionError(msg)
            if new_status == TaskStatus.COMPLETED:
                msg = f"Cannot set task {task_id} to completed directly; complete it instead"
                raise InvalidTransitionError(msg)
            if new_status == TaskStatus.IN_PROGRESS:
                updated = engine.start_task(current)
            elif new_status == TaskStatus.CANCELLED:
                updated = engine.cancel_task(current)
            else:
                msg = f"Cannot move task {task_id} from {current.status} to {new_status}"
                raise InvalidTransitionError(msg)

        if not changes and updated.status == current.status:
            return to_view(current, today)

        candidate = {**updated.model_dump(), **changes}
        engine.validate_schedule(candidate)
        merged = Task.model_validate(candidate)

        row_changes = merged.model_dump(mode="json", include={*changes, "status"})

        saved = await _persist_transition(
            current=current,
            updated=merged,
            changes=row_changes,
            user_id=updated_by,
            action=TaskAction.CANCELLED if merged.status == TaskStatus.CANCELLED else TaskAction.UPDATED,
        )
        log_with_task_context(
            logger, "info", "Updated task", task_id=task_id, project_id=project_id, fields=sorted(row_changes)
        )
        return to_view(saved, today)


async def start_task(
    *, project_id: str, task_id: str, user_id: str | None = None, today: date | None = None
) -> TaskView:
    """Move a pending task to in progress."""
    with span("task_service.start_task"):
        current = await _load_task(project_id=project_id, task_id=task_id)
        started = engine.start_task(current)
        saved = await _persist_transition(
            current=current,
            updated=started,
            changes={"status": started.status.value},
            user_id=user_id,
            action=TaskAction.STARTED,
        )
        log_with_task_context(logger, "info", "Started task", task_id=task_id, project_id=project_id)
        return to_view(saved, today)


async def cancel_task(
    *, project_id: str, task_id: str, user_id: str | None = None, today: date | None = None
) -> TaskView:
    """Cancel a pending or in-progress task."""
    with span("task_service.cancel_task"):
        current = await _load_task(project_id=project_id, task_id=task_id)
        cancelled = engine.cancel_task(current)
        saved = await _persist_transition(
            current=current,
            updated=cancelled,
            changes={"status": cancelled.status.value},
            user_id=user_id,
            action=TaskAction.CANCELLED,
        )
        log_with_task_context(logger, "info", "Cancelled task", task_id=task_id, project_id=project_id)
        return to_view(saved, today)


async def complete_task(
    *,
    project_id: str,
    task_id: str,
    completed_by: str,
    completion_notes: str | None = None,
    today: date | None = None,
) -> CompletionOutcome:
    """Complete a task and insert its next occurrence when it recurs.

    Raises:
        TaskNotFoundError: If the task does not exist in the project
        AlreadyTerminalError: If the task is already completed or cancelled,
            including when another request completed it first
    """
    with span("task_service.complete_task"):
        current = await _load_task(project_id=project_id, task_id=task_id)
        result = engine.complete_task(current, completed_by, completion_notes, today)
        completed = result.updated_task

        changes = completed.model_dump(
            mode="json",
            include={"status", "completed_at", "completed_by", "completion_notes", "next_due_date"},
        )
        changes["last_completed_at"] = _now_iso()

        next_task = None
        # The completion and the next occurrence commit together
        async with db_client.transaction():
            saved = await _persist_transition(
                current=current,
                updated=completed,
                changes=changes,
                user_id=completed_by,
                action=TaskAction.COMPLETED,
                history_value={"completion_notes": completion_notes},
            )

            if result.new_task_draft is not None:
                draft = result.new_task_draft.model_copy(update={"updated_by": completed_by})
                now = _now_iso()
                record = await db_client.create_record(
                    collection=TASKS,
                    data={**_task_row(draft), "created": now, "updated": now},
                )
                next_task = to_task(record)
                await _write_history(
                    task_id=next_task.id or "",
                    user_id=completed_by,
                    action=TaskAction.CREATED,
                    new_value={"parent_task_id": task_id, "due_date": next_task.due_date},
                )

        next_view = to_view(next_task, today) if next_task else None

        log_with_task_context(
            logger,
            "info",
            "Completed task",
            task_id=task_id,
            project_id=project_id,
            next_task_id=next_view.id if next_view else None,
        )
        return CompletionOutcome(task=to_view(saved, today), next_task=next_view)


async def delete_task(*, project_id: str, task_id: str, user_id: str | None = None) -> None:
    """Delete a task and record the deletion."""
    with span("task_service.delete_task"):
        current = await _load_task(project_id=project_id, task_id=task_id)
        async with db_client.transaction():
            await db_client.delete_record(collection=TASKS, record_id=task_id)
            await _write_history(
                task_id=task_id,
                user_id=user_id,
                action=TaskAction.DELETED,
                old_value=current.model_dump(mode="json"),
            )
        log_with_task_context(logger, "info", "Deleted task", task_id=task_id, project_id=project_id)


async def add_comment(
    *, project_id: str, task_id: str, payload: CommentCreate, user_id: str | None = None
) -> TaskComment:
    """Attach a comment to a task."""
    with span("task_service.add_comment"):
        await _load_task(project_id=project_id, task_id=task_id)
        data: dict[str, Any] = {"task_id": task_id, "content": payload.content, "created": _now_iso()}
        if user_id:
            data["user_id"] = user_id
        record = await db_client.create_record(collection=COMMENTS, data=data)
        return TaskComment.model_validate(record)


async def list_comments(*, task_id: str) -> list[TaskComment]:
    """Comments on a task, newest first."""
    records = await db_client.list_records(
        collection=COMMENTS,
        per_page=constants.REMINDER_SCAN_PAGE_SIZE,
        filter_query=f'task_id = "{sanitize_param(task_id)}"',
        sort="-created,-id",
    )
    return [TaskComment.model_validate(record) for record in records]


async def get_history(*, project_id: str, task_id: str) -> list[TaskHistoryEntry]:
    """History entries of a task, oldest first."""
    with span("task_service.get_history"):
        await _load_task(project_id=project_id, task_id=task_id)
        records = await db_client.list_records(
            collection=HISTORY,
            per_page=constants.REMINDER_SCAN_PAGE_SIZE,
            filter_query=f'task_id = "{sanitize_param(task_id)}"',
            sort="+id",
        )
        return [TaskHistoryEntry.model_validate(record) for record in records]
