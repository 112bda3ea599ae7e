"""
First-run setup: create the initial admin while none exists.

No authentication; the endpoint closes itself once an admin role row exists.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.store import (
    IdentityStore,
    RelationalStore,
    get_identity_store,
    get_relational_store,
)
from app.services import admin as admin_service
from taskflow_shared.schemas.users import (
    SetupAdminRequest,
    SetupAdminResponse,
    SetupStatusResponse,
)

router = APIRouter()


@router.get("/status", response_model=SetupStatusResponse)
async def setup_status(db: RelationalStore = Depends(get_relational_store)):
    return SetupStatusResponse(adminExists=await admin_service.admin_exists(db))


@router.post("", response_model=SetupAdminResponse)
async def setup_admin(
    body: SetupAdminRequest,
    identities: IdentityStore = Depends(get_identity_store),
    db: RelationalStore = Depends(get_relational_store),
):
    user_id = await admin_service.setup_first_admin(body, identities, db)
    return SetupAdminResponse(userId=user_id)
