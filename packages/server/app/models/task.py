"""Task model."""

from datetime import date, datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Task(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    title: str = Field(nullable=False)
    description: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = Field(default=None, index=True)
    created_by: uuid.UUID = Field(nullable=False)
    priority: str = Field(nullable=False, default="medium")  # low | medium | high
    due_date: Optional[date] = Field(default=None, sa_type=sa.Date)
    status: str = Field(nullable=False, default="todo")  # todo | in_progress | done
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
