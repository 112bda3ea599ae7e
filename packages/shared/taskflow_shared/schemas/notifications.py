"""Notification feed schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import UUID4, BaseModel


class NotificationRead(BaseModel):
    id: UUID4
    user_id: UUID4
    message: str
    task_id: Optional[UUID4] = None
    is_read: bool = False
    created_at: datetime


class NotificationListResponse(BaseModel):
    data: List[NotificationRead]
    unread_count: int = 0
