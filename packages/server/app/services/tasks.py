"""
Task service layer: business logic for tasks and their notification side effects.

Handles:
- Task CRUD (admin only, except status)
- Status transitions todo -> in_progress -> todo | done
- Notify the assignee on creation, and every admin on completion
- Enrichment of task data with the assignee's profile
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional, Sequence

import structlog

from app.core.auth import Caller
from app.core.errors import (
    AuthorizationError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from app.core.store import RelationalStore, StoreError
from app.models.profile import Profile
from app.models.task import Task
from app.services import notifications
from taskflow_shared.schemas.common import TaskStatus
from taskflow_shared.schemas.tasks import (
    AssigneeRead,
    TaskCreate,
    TaskRead,
    TaskStats,
    TaskUpdate,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_admin(caller: Caller, action: str) -> None:
    if not caller.is_admin:
        raise AuthorizationError(f"Only admins can {action}")


async def get_task_or_404(db: RelationalStore, task_id: uuid.UUID) -> Task:
    try:
        task = await db.get_task(task_id)
    except StoreError as exc:
        raise StoreUnavailableError("Failed to load task") from exc
    if task is None:
        raise NotFoundError("Task not found")
    return task


async def _ensure_assignable(db: RelationalStore, user_id: uuid.UUID) -> None:
    try:
        profile = await db.get_profile(user_id)
    except StoreError as exc:
        raise StoreUnavailableError("Failed to load assignee") from exc
    if profile is None:
        raise ValidationError("Assignee does not exist")


async def _assignee_profiles(
    db: RelationalStore, tasks: Sequence[Task]
) -> dict[uuid.UUID, Profile]:
    user_ids = sorted({t.assigned_to for t in tasks if t.assigned_to}, key=str)
    if not user_ids:
        return {}
    try:
        profiles = await db.list_profiles(user_ids)
    except StoreError as exc:
        # Tasks are still useful without names.
        log.warning("task.assignee_lookup_failed", error=exc.message)
        return {}
    return {p.user_id: p for p in profiles}


def _to_read(task: Task, profiles: dict[uuid.UUID, Profile]) -> TaskRead:
    profile = profiles.get(task.assigned_to) if task.assigned_to else None
    return TaskRead(
        id=task.id,
        title=task.title,
        description=task.description,
        assigned_to=task.assigned_to,
        assigned_user=(
            AssigneeRead(user_id=profile.user_id, username=profile.username) if profile else None
        ),
        created_by=task.created_by,
        priority=task.priority,
        status=task.status,
        due_date=task.due_date,
        created_at=task.created_at,
        completed_at=task.completed_at,
    )


async def enrich_tasks(db: RelationalStore, tasks: Sequence[Task]) -> list[TaskRead]:
    profiles = await _assignee_profiles(db, tasks)
    return [_to_read(t, profiles) for t in tasks]


async def enrich_task(db: RelationalStore, task: Task) -> TaskRead:
    return (await enrich_tasks(db, [task]))[0]


def is_overdue(task: Task, today: Optional[date] = None) -> bool:
    if task.due_date is None or task.status == TaskStatus.DONE.value:
        return False
    return task.due_date < (today or date.today())


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_tasks(
    caller: Caller, db: RelationalStore, *, mine_only: bool = False
) -> list[Task]:
    """Admins see every task unless ``mine_only``; members see their own."""
    assigned_to = caller.user_id if (mine_only or not caller.is_admin) else None
    try:
        return await db.list_tasks(assigned_to=assigned_to)
    except StoreError as exc:
        log.error("task.list_failed", error=exc.message)
        raise StoreUnavailableError("Failed to load tasks") from exc


async def get_task(caller: Caller, task_id: uuid.UUID, db: RelationalStore) -> Task:
    task = await get_task_or_404(db, task_id)
    if not caller.is_admin and task.assigned_to != caller.user_id:
        raise NotFoundError("Task not found")
    return task


async def task_stats(
    caller: Caller, db: RelationalStore, *, today: Optional[date] = None
) -> TaskStats:
    tasks = await list_tasks(caller, db)
    stats = TaskStats(total=len(tasks))
    for task in tasks:
        if task.status == TaskStatus.TODO.value:
            stats.todo += 1
        elif task.status == TaskStatus.IN_PROGRESS.value:
            stats.in_progress += 1
        elif task.status == TaskStatus.DONE.value:
            stats.done += 1
        if is_overdue(task, today):
            stats.overdue += 1
    return stats


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(caller: Caller, task_in: TaskCreate, db: RelationalStore) -> Task:
    _require_admin(caller, "create tasks")
    if caller.user_id is None:
        raise ValidationError("Tasks must be created by a signed-in admin")
    if task_in.assigned_to:
        await _ensure_assignable(db, task_in.assigned_to)

    task = Task(
        title=task_in.title,
        description=task_in.description or None,
        assigned_to=task_in.assigned_to,
        created_by=caller.user_id,
        priority=task_in.priority.value,
        due_date=task_in.due_date,
        status=TaskStatus.TODO.value,
    )
    try:
        task = await db.insert_task(task)
    except StoreError as exc:
        log.error("task.create_failed", error=exc.message)
        raise StoreUnavailableError("Failed to create task") from exc
    log.info("task.created", task_id=str(task.id), assigned_to=str(task.assigned_to))

    if task.assigned_to:
        await notifications.notify(
            db,
            task.assigned_to,
            notifications.ASSIGNED_MESSAGE.format(title=task.title),
            task.id,
        )
    return task


async def update_task(
    caller: Caller, task_id: uuid.UUID, task_in: TaskUpdate, db: RelationalStore
) -> Task:
    _require_admin(caller, "edit tasks")
    await get_task_or_404(db, task_id)

    data = task_in.model_dump(exclude_unset=True)
    if "title" in data and not data["title"]:
        raise ValidationError("Title is required")
    if "priority" in data:
        if data["priority"] is None:
            raise ValidationError("Priority is required")
        data["priority"] = data["priority"].value
    if "description" in data:
        data["description"] = data["description"] or None
    if data.get("assigned_to"):
        await _ensure_assignable(db, data["assigned_to"])
    if not data:
        return await get_task_or_404(db, task_id)

    try:
        task = await db.update_task(task_id, data)
    except StoreError as exc:
        log.error("task.update_failed", task_id=str(task_id), error=exc.message)
        raise StoreUnavailableError("Failed to update task") from exc
    if task is None:
        raise NotFoundError("Task not found")
    log.info("task.updated", task_id=str(task_id), fields=sorted(data))
    return task


async def delete_task(caller: Caller, task_id: uuid.UUID, db: RelationalStore) -> None:
    _require_admin(caller, "delete tasks")
    try:
        deleted = await db.delete_task(task_id)
    except StoreError as exc:
        log.error("task.delete_failed", task_id=str(task_id), error=exc.message)
        raise StoreUnavailableError("Failed to delete task") from exc
    if not deleted:
        raise NotFoundError("Task not found")
    log.info("task.deleted", task_id=str(task_id))


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

VALID_TRANSITIONS = {
    TaskStatus.TODO: [TaskStatus.IN_PROGRESS],
    TaskStatus.IN_PROGRESS: [TaskStatus.TODO, TaskStatus.DONE],
    TaskStatus.DONE: [],
}


async def transition_task(
    caller: Caller,
    task_id: uuid.UUID,
    to_status: TaskStatus,
    db: RelationalStore,
    *,
    enforce_assignee: bool = False,
) -> Task:
    task = await get_task_or_404(db, task_id)
    if enforce_assignee and not caller.is_admin and task.assigned_to != caller.user_id:
        raise AuthorizationError("Only the assignee can update this task")

    current = TaskStatus(task.status)
    allowed = VALID_TRANSITIONS.get(current, [])
    if to_status not in allowed:
        raise ValidationError(
            f"Cannot transition from '{current.value}' to '{to_status.value}'. "
            f"Allowed: {[s.value for s in allowed]}"
        )

    values: dict = {"status": to_status.value}
    if to_status == TaskStatus.DONE:
        values["completed_at"] = datetime.now(timezone.utc)

    try:
        updated = await db.update_task(task_id, values)
    except StoreError as exc:
        log.error("task.status_update_failed", task_id=str(task_id), error=exc.message)
        raise StoreUnavailableError("Failed to update task status") from exc
    if updated is None:
        raise NotFoundError("Task not found")
    log.info(
        "task.transitioned",
        task_id=str(task_id),
        from_status=current.value,
        to_status=to_status.value,
        actor=str(caller.user_id),
    )

    if to_status == TaskStatus.DONE and task.created_by != caller.user_id:
        await notifications.notify_admins(
            db,
            notifications.COMPLETED_MESSAGE.format(title=task.title),
            task.id,
        )
    return updated
