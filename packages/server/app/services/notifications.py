"""
Notification feed: best-effort writers for task events, plus read/unread flips.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog

from app.core.auth import Caller
from app.core.errors import NotFoundError, StoreUnavailableError
from app.core.store import RelationalStore, StoreError
from app.models.notification import Notification
from taskflow_shared.schemas.common import Role

log = structlog.get_logger()

ASSIGNED_MESSAGE = 'You have been assigned a new task: "{title}"'
COMPLETED_MESSAGE = 'Task "{title}" has been completed'


# ---------------------------------------------------------------------------
# Writers (never raise)
# ---------------------------------------------------------------------------


async def notify(
    db: RelationalStore,
    user_id: uuid.UUID,
    message: str,
    task_id: Optional[uuid.UUID] = None,
) -> Optional[Notification]:
    """Write one notification. A failure is logged and returns None."""
    try:
        notification = await db.insert_notification(
            Notification(user_id=user_id, message=message, task_id=task_id)
        )
    except StoreError as exc:
        log.warning(
            "notification.failed",
            user_id=str(user_id),
            task_id=str(task_id) if task_id else None,
            error=exc.message,
        )
        return None
    log.info("notification.sent", user_id=str(user_id), task_id=str(task_id) if task_id else None)
    return notification


async def notify_admins(
    db: RelationalStore,
    message: str,
    task_id: Optional[uuid.UUID] = None,
) -> int:
    """Fan out one notification per admin. Returns how many were written."""
    try:
        admins = await db.list_roles(role=Role.ADMIN.value)
    except StoreError as exc:
        log.warning("notification.admin_lookup_failed", task_id=str(task_id), error=exc.message)
        return 0

    sent = 0
    for admin in admins:
        if await notify(db, admin.user_id, message, task_id):
            sent += 1
    return sent


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------


async def list_notifications(
    caller: Caller, db: RelationalStore
) -> tuple[list[Notification], int]:
    """The caller's notifications (newest first) and the unread count."""
    try:
        items = await db.list_notifications(caller.user_id)
    except StoreError as exc:
        log.error("notification.list_failed", user_id=str(caller.user_id), error=exc.message)
        raise StoreUnavailableError("Failed to load notifications") from exc
    return items, sum(1 for n in items if not n.is_read)


async def mark_read(caller: Caller, notification_id: uuid.UUID, db: RelationalStore) -> None:
    try:
        updated = await db.mark_notification_read(notification_id, caller.user_id)
    except StoreError as exc:
        raise StoreUnavailableError("Failed to update notification") from exc
    if not updated:
        raise NotFoundError("Notification not found")


async def mark_all_read(caller: Caller, db: RelationalStore) -> int:
    try:
        return await db.mark_all_notifications_read(caller.user_id)
    except StoreError as exc:
        raise StoreUnavailableError("Failed to update notifications") from exc
