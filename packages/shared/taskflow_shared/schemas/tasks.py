"""Task-related Pydantic schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import UUID4, BaseModel, Field

from .common import TaskPriority, TaskStatus


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    assigned_to: Optional[UUID4] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    assigned_to: Optional[UUID4] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None


class AssigneeRead(BaseModel):
    user_id: UUID4
    username: str


class TaskRead(BaseModel):
    id: UUID4
    title: str
    description: Optional[str] = None
    assigned_to: Optional[UUID4] = None
    assigned_user: Optional[AssigneeRead] = None
    created_by: UUID4
    priority: TaskPriority
    status: TaskStatus
    due_date: Optional[date] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

class TaskStatusUpdate(BaseModel):
    """Request body for PATCH /tasks/{taskId}/status."""
    status: TaskStatus


class TaskStats(BaseModel):
    total: int = 0
    todo: int = 0
    in_progress: int = 0
    done: int = 0
    overdue: int = 0
