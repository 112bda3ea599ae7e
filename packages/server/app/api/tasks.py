"""
Task endpoints: CRUD and status transitions.

Statuses: todo → in_progress → todo | done
- Creating an assigned task notifies the assignee.
- Completing a task created by someone else notifies every admin.
- Create, edit and delete are admin only; any signed-in user may move status.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends

from app.core.auth import Caller, get_caller
from app.core.config import Settings, get_settings
from app.core.store import RelationalStore, get_relational_store
from app.services import tasks as task_service
from taskflow_shared.schemas.common import SuccessResponse
from taskflow_shared.schemas.tasks import (
    TaskCreate,
    TaskRead,
    TaskStats,
    TaskStatusUpdate,
    TaskUpdate,
)

router = APIRouter()


@router.get("", response_model=List[TaskRead])
async def list_tasks_endpoint(
    mine: bool = False,
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    """Newest first. Members only ever see tasks assigned to them."""
    tasks = await task_service.list_tasks(caller, db, mine_only=mine)
    return await task_service.enrich_tasks(db, tasks)


@router.get("/stats", response_model=TaskStats)
async def task_stats_endpoint(
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    return await task_service.task_stats(caller, db)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task_endpoint(
    task_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    task = await task_service.get_task(caller, task_id, db)
    return await task_service.enrich_task(db, task)


@router.post("", response_model=TaskRead, status_code=201)
async def create_task_endpoint(
    task_in: TaskCreate,
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    task = await task_service.create_task(caller, task_in, db)
    return await task_service.enrich_task(db, task)


@router.put("/{task_id}", response_model=TaskRead)
async def update_task_endpoint(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    task = await task_service.update_task(caller, task_id, task_in, db)
    return await task_service.enrich_task(db, task)


@router.patch("/{task_id}/status", response_model=TaskRead)
async def update_task_status_endpoint(
    task_id: uuid.UUID,
    body: TaskStatusUpdate,
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
    settings: Settings = Depends(get_settings),
):
    task = await task_service.transition_task(
        caller,
        task_id,
        body.status,
        db,
        enforce_assignee=settings.enforce_assignee_status_updates,
    )
    return await task_service.enrich_task(db, task)


@router.delete("/{task_id}", response_model=SuccessResponse)
async def delete_task_endpoint(
    task_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    db: RelationalStore = Depends(get_relational_store),
):
    await task_service.delete_task(caller, task_id, db)
    return SuccessResponse()
