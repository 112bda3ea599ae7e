"""
User lifecycle service: keeps identity, profile and role records consistent.

Each user is three records in two stores: an identity in the auth service, a
profile row and a role row in the database. There is no transaction spanning
them. Create compensates a failed profile write by deleting the fresh
identity; every other partial failure is reported to the caller as-is.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog

from app.core.errors import (
    ConflictError,
    IdentityError,
    NotFoundError,
    ProfileError,
    RoleError,
    StoreUnavailableError,
    ValidationError,
)
from app.core.store import IdentityStore, RelationalStore, StoreError, is_unique_violation
from app.models.profile import Profile
from app.models.user_role import RoleAssignment
from taskflow_shared.schemas.common import Role
from taskflow_shared.schemas.users import UserCreateRequest, UserUpdateRequest

log = structlog.get_logger()

USERNAME_TAKEN = "Username already exists"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def username_taken(
    db: RelationalStore, username: str, *, exclude_user_id: Optional[uuid.UUID] = None
) -> bool:
    """True if a profile other than ``exclude_user_id`` owns ``username``."""
    try:
        holder = await db.get_profile_by_username(username, exclude_user_id=exclude_user_id)
    except StoreError as exc:
        log.error("profile.lookup_failed", username=username, error=exc.message)
        raise ProfileError("Failed to check username") from exc
    return holder is not None


async def replace_role(db: RelationalStore, user_id: uuid.UUID, role: Role) -> None:
    """Delete-then-insert, so at most one role row survives per user."""
    try:
        await db.delete_roles(user_id)
        await db.insert_role(RoleAssignment(user_id=user_id, role=role.value))
    except StoreError as exc:
        log.error("role.replace_failed", user_id=str(user_id), role=role.value, error=exc.message)
        raise RoleError("Failed to update role") from exc


async def _discard_identity(identities: IdentityStore, user_id: uuid.UUID) -> None:
    """Best-effort undo of a just-created identity. Failure is logged only."""
    try:
        await identities.delete_identity(user_id)
    except StoreError as exc:
        log.error(
            "user.compensation_failed",
            user_id=str(user_id),
            error=exc.message,
            action="orphaned identity needs manual cleanup",
        )
    else:
        log.warning("user.identity_discarded", user_id=str(user_id))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def create_user(
    req: UserCreateRequest,
    identities: IdentityStore,
    db: RelationalStore,
) -> uuid.UUID:
    """Create identity, profile and role. Returns the new UID."""
    if not (req.email and req.password and req.username and req.role):
        raise ValidationError("Missing required fields")
    role = Role(req.role)

    if await username_taken(db, req.username):
        raise ConflictError(USERNAME_TAKEN)

    try:
        identity = await identities.create_identity(req.email, req.password)
    except StoreError as exc:
        log.error("user.identity_create_failed", email=req.email, error=exc.message)
        raise IdentityError(exc.message, status_code=400) from exc

    try:
        await db.insert_profile(Profile(user_id=identity.id, username=req.username))
    except StoreError as exc:
        log.error("user.profile_create_failed", user_id=str(identity.id), error=exc.message)
        await _discard_identity(identities, identity.id)
        if is_unique_violation(exc):
            raise ConflictError(USERNAME_TAKEN) from exc
        raise ProfileError("Failed to create user profile") from exc

    try:
        await db.insert_role(RoleAssignment(user_id=identity.id, role=role.value))
    except StoreError as exc:
        log.error("user.role_create_failed", user_id=str(identity.id), error=exc.message)
        raise RoleError("Failed to assign user role") from exc

    log.info("user.created", user_id=str(identity.id), username=req.username, role=role.value)
    return identity.id


async def update_user(
    user_id: uuid.UUID,
    req: UserUpdateRequest,
    identities: IdentityStore,
    db: RelationalStore,
) -> list[str]:
    """Apply username, role and password changes in that order.

    Stops at the first failure; earlier changes stay applied. Returns the
    names of the fields that were changed.
    """
    changed: list[str] = []

    if req.username:
        if await username_taken(db, req.username, exclude_user_id=user_id):
            raise ConflictError(USERNAME_TAKEN)
        try:
            renamed = await db.update_profile_username(user_id, req.username)
        except StoreError as exc:
            log.error("user.profile_update_failed", user_id=str(user_id), error=exc.message)
            if is_unique_violation(exc):
                raise ConflictError(USERNAME_TAKEN) from exc
            raise ProfileError("Failed to update username") from exc
        if not renamed:
            log.error("user.profile_missing", user_id=str(user_id))
            raise NotFoundError("User profile not found")
        changed.append("username")

    if req.role:
        await replace_role(db, user_id, Role(req.role))
        changed.append("role")

    if req.password:
        try:
            await identities.update_identity(user_id, password=req.password)
        except StoreError as exc:
            log.error("user.password_update_failed", user_id=str(user_id), error=exc.message)
            raise IdentityError("Failed to update password") from exc
        changed.append("password")

    log.info("user.updated", user_id=str(user_id), fields=changed)
    return changed


async def delete_user(user_id: uuid.UUID, identities: IdentityStore) -> None:
    """Delete the identity; the database cascades profile and role rows."""
    try:
        await identities.delete_identity(user_id)
    except StoreError as exc:
        log.error("user.delete_failed", user_id=str(user_id), error=exc.message)
        raise IdentityError("Failed to delete user") from exc
    log.info("user.deleted", user_id=str(user_id))


async def list_users(db: RelationalStore) -> list[dict]:
    """All profiles, newest first, each with its role."""
    try:
        profiles = await db.list_profiles()
        roles = await db.list_roles()
    except StoreError as exc:
        log.error("user.list_failed", error=exc.message)
        raise StoreUnavailableError("Failed to load users") from exc

    role_by_user = {r.user_id: r.role for r in roles}
    return [
        {
            "id": p.user_id,
            "username": p.username,
            "role": role_by_user.get(p.user_id, Role.MEMBER.value),
            "created_at": p.created_at,
        }
        for p in profiles
    ]
