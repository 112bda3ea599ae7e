"""
User management endpoints (elevated credential only).

POST   /api/users/create          Create identity, profile and role
PUT    /api/users/{userId}        Change username, role and/or password
DELETE /api/users/{userId}        Delete the user (profile and role cascade)
GET    /api/users                 List profiles with roles
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends

from app.core.auth import Caller, require_elevated
from app.core.store import (
    IdentityStore,
    RelationalStore,
    get_identity_store,
    get_relational_store,
)
from app.services import users as user_service
from taskflow_shared.schemas.common import SuccessResponse
from taskflow_shared.schemas.users import (
    UserCreateRequest,
    UserCreateResponse,
    UserListResponse,
    UserResponse,
    UserUpdateRequest,
)

log = structlog.get_logger()

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    caller: Caller = Depends(require_elevated),
    db: RelationalStore = Depends(get_relational_store),
):
    """List every user, newest first."""
    items = await user_service.list_users(db)
    return UserListResponse(data=[UserResponse(**item) for item in items])


@router.post("/create", response_model=UserCreateResponse)
async def create_user(
    body: UserCreateRequest,
    caller: Caller = Depends(require_elevated),
    identities: IdentityStore = Depends(get_identity_store),
    db: RelationalStore = Depends(get_relational_store),
):
    user_id = await user_service.create_user(body, identities, db)
    log.info("api.user_created", user_id=str(user_id), actor=repr(caller))
    return UserCreateResponse(userId=user_id)


@router.put("/{userId}", response_model=SuccessResponse)
async def update_user(
    userId: uuid.UUID,
    body: UserUpdateRequest,
    caller: Caller = Depends(require_elevated),
    identities: IdentityStore = Depends(get_identity_store),
    db: RelationalStore = Depends(get_relational_store),
):
    await user_service.update_user(userId, body, identities, db)
    return SuccessResponse()


@router.delete("/{userId}", response_model=SuccessResponse)
async def delete_user(
    userId: uuid.UUID,
    caller: Caller = Depends(require_elevated),
    identities: IdentityStore = Depends(get_identity_store),
):
    await user_service.delete_user(userId, identities)
    return SuccessResponse()
