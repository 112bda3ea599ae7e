"""Notification model (written as a side effect of task events)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Notification(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "notifications"

    user_id: uuid.UUID = Field(nullable=False, index=True)
    message: str = Field(nullable=False)
    task_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tasks.id")
    is_read: bool = Field(default=False, nullable=False)
