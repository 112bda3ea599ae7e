"""
Notification feed for the signed-in user.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from app.core.auth import Caller, get_caller
from app.core.store import RelationalStore, get_relational_store
from app.services import notifications as notification_service
from taskflow_shared.schemas.common import SuccessResponse
from taskflow_shared.schemas.notifications import (
    NotificationListResponse,
    NotificationRead,
)

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    items, unread = await notification_service.list_notifications(caller, db)
    return NotificationListResponse(
        data=[NotificationRead.model_validate(n, from_attributes=True) for n in items],
        unread_count=unread,
    )


@router.post("/read-all", response_model=SuccessResponse)
async def mark_all_read(
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    await notification_service.mark_all_read(caller, db)
    return SuccessResponse()


@router.post("/{notification_id}/read", response_model=SuccessResponse)
async def mark_read(
    notification_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    await notification_service.mark_read(caller, notification_id, db)
    return SuccessResponse()
