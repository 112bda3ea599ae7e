"""
Admin bootstrap and repair.

- ensure_admin: idempotently make one identity the admin, whatever state the
  stores are in. Used by the bootstrap script, so it never rejects a username
  collision; the other holder is renamed instead.
- reconcile_admin_role: repair a profile whose role row is missing or wrong.
- setup_first_admin: the first-run path, only while no admin exists.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog

from app.core.errors import (
    ConflictError,
    IdentityError,
    NotFoundError,
    ProfileError,
    StoreUnavailableError,
    ValidationError,
)
from app.core.store import IdentityStore, RelationalStore, StoreError
from app.models.identity import Identity
from app.models.user_role import RoleAssignment
from app.services import users as user_service
from app.services.users import replace_role
from taskflow_shared.schemas.common import Role
from taskflow_shared.schemas.users import SetupAdminRequest, UserCreateRequest

log = structlog.get_logger()

PLACEHOLDER_USERNAME = "admin"
COLLISION_SUFFIX = "_old"
MIN_PASSWORD_LENGTH = 6


@dataclass
class BootstrapReport:
    user_id: uuid.UUID
    created: bool
    removed_user_ids: list[uuid.UUID] = field(default_factory=list)
    renamed_user_id: Optional[uuid.UUID] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _same_email(a: Optional[str], b: str) -> bool:
    return a is not None and a.strip().lower() == b.strip().lower()


async def _remove_placeholder_admins(
    identities: IdentityStore,
    db: RelationalStore,
    existing: list[Identity],
    keep_email: str,
) -> list[uuid.UUID]:
    """Delete identities whose username is the reserved placeholder."""
    doomed = {i.id for i in existing if i.username == PLACEHOLDER_USERNAME}
    try:
        profile = await db.get_profile_by_username(PLACEHOLDER_USERNAME)
    except StoreError as exc:
        raise ProfileError("Failed to look up placeholder admin") from exc
    if profile is not None:
        doomed.add(profile.user_id)
    doomed -= {i.id for i in existing if _same_email(i.email, keep_email)}

    removed: list[uuid.UUID] = []
    for user_id in doomed:
        try:
            await identities.delete_identity(user_id)
        except StoreError as exc:
            log.error("admin.placeholder_delete_failed", user_id=str(user_id), error=exc.message)
            raise IdentityError("Failed to remove placeholder admin") from exc
        log.info("admin.placeholder_removed", user_id=str(user_id))
        removed.append(user_id)
    return removed


async def _release_username(
    db: RelationalStore, username: str, user_id: uuid.UUID
) -> Optional[uuid.UUID]:
    """Rename another user's profile out of the way. Returns that user's UID."""
    try:
        holder = await db.get_profile_by_username(username, exclude_user_id=user_id)
        if holder is None:
            return None
        new_name = f"{username}{COLLISION_SUFFIX}"
        while await db.get_profile_by_username(new_name) is not None:
            new_name += COLLISION_SUFFIX
        await db.update_profile_username(holder.user_id, new_name)
    except StoreError as exc:
        log.error("admin.collision_rename_failed", username=username, error=exc.message)
        raise ProfileError("Failed to rename colliding profile") from exc

    log.warning(
        "admin.username_collision_renamed",
        username=username,
        renamed_to=new_name,
        user_id=str(holder.user_id),
    )
    return holder.user_id


# ---------------------------------------------------------------------------
# Bootstrap & repair
# ---------------------------------------------------------------------------


async def ensure_admin(
    email: str,
    password: str,
    username: str,
    identities: IdentityStore,
    db: RelationalStore,
) -> BootstrapReport:
    """Make exactly one admin exist with this email and username. Idempotent."""
    if not (email and password and username):
        raise ValidationError("Missing required fields")

    try:
        existing = await identities.list_identities()
    except StoreError as exc:
        log.error("admin.list_identities_failed", error=exc.message)
        raise IdentityError("Failed to list users") from exc

    removed = await _remove_placeholder_admins(identities, db, existing, email)
    target = next(
        (i for i in existing if _same_email(i.email, email) and i.id not in removed),
        None,
    )

    metadata = {"username": username}
    if target is not None:
        try:
            await identities.update_identity(
                target.id, password=password, metadata=metadata, email_confirm=True
            )
        except StoreError as exc:
            log.error("admin.identity_update_failed", user_id=str(target.id), error=exc.message)
            raise IdentityError(exc.message) from exc
        user_id, created = target.id, False
        log.info("admin.identity_updated", user_id=str(user_id))
    else:
        try:
            identity = await identities.create_identity(email, password, metadata=metadata)
        except StoreError as exc:
            log.error("admin.identity_create_failed", email=email, error=exc.message)
            raise IdentityError(exc.message) from exc
        user_id, created = identity.id, True
        log.info("admin.identity_created", user_id=str(user_id))

    renamed = await _release_username(db, username, user_id)

    try:
        await db.upsert_profile(user_id, username)
    except StoreError as exc:
        log.error("admin.profile_upsert_failed", user_id=str(user_id), error=exc.message)
        raise ProfileError("Failed to update admin profile") from exc

    await replace_role(db, user_id, Role.ADMIN)

    log.info("admin.ensured", user_id=str(user_id), created=created, username=username)
    return BootstrapReport(
        user_id=user_id,
        created=created,
        removed_user_ids=removed,
        renamed_user_id=renamed,
    )


async def reconcile_admin_role(username: str, db: RelationalStore) -> str:
    """Create or correct the admin role for ``username``.

    Returns "created", "updated" or "unchanged".
    """
    try:
        profile = await db.get_profile_by_username(username)
        current = await db.get_role(profile.user_id) if profile else None
    except StoreError as exc:
        raise StoreUnavailableError("Failed to read profile or role") from exc
    if profile is None:
        raise NotFoundError(f"No profile found for username '{username}'")

    if current is None:
        try:
            await db.insert_role(RoleAssignment(user_id=profile.user_id, role=Role.ADMIN.value))
        except StoreError as exc:
            raise StoreUnavailableError("Failed to create admin role") from exc
        action = "created"
    elif current.role != Role.ADMIN.value:
        await replace_role(db, profile.user_id, Role.ADMIN)
        action = "updated"
    else:
        action = "unchanged"

    log.info("admin.role_reconciled", username=username, user_id=str(profile.user_id), action=action)
    return action


# ---------------------------------------------------------------------------
# First-run setup
# ---------------------------------------------------------------------------


async def admin_exists(db: RelationalStore) -> bool:
    try:
        admins = await db.list_roles(role=Role.ADMIN.value)
    except StoreError as exc:
        log.error("admin.lookup_failed", error=exc.message)
        raise StoreUnavailableError("Failed to check existing admins") from exc
    return len(admins) > 0


async def setup_first_admin(
    req: SetupAdminRequest,
    identities: IdentityStore,
    db: RelationalStore,
) -> uuid.UUID:
    if await admin_exists(db):
        raise ConflictError("An admin already exists. Use the login page.")
    if not (req.email and req.password and req.username):
        raise ValidationError("Missing required fields")
    if len(req.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    return await user_service.create_user(
        UserCreateRequest(
            email=req.email,
            password=req.password,
            username=req.username,
            role=Role.ADMIN,
        ),
        identities,
        db,
    )
