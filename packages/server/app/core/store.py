"""
Interfaces to the two hosted collaborators: the identity store (auth) and the
relational store (tables). Services depend on these protocols only; the
Supabase-backed implementations live in ``app.core.supabase``.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional, Protocol, Sequence

from fastapi import Request

from app.models.identity import Identity
from app.models.notification import Notification
from app.models.profile import Profile
from app.models.task import Task
from app.models.user_role import RoleAssignment

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class StoreError(Exception):
    """A remote call to the identity or relational store failed."""

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


def is_unique_violation(exc: StoreError) -> bool:
    return exc.code == UNIQUE_VIOLATION


class IdentityStore(Protocol):
    async def create_identity(
        self, email: str, password: str, *, metadata: Optional[dict] = None
    ) -> Identity: ...

    async def update_identity(
        self,
        user_id: uuid.UUID,
        *,
        password: Optional[str] = None,
        metadata: Optional[dict] = None,
        email_confirm: Optional[bool] = None,
    ) -> Identity: ...

    async def delete_identity(self, user_id: uuid.UUID) -> None: ...

    async def list_identities(self) -> list[Identity]: ...

    async def get_identity_for_token(self, token: str) -> Optional[Identity]:
        """Resolve an access token to its identity, None if the token is invalid."""
        ...


class RelationalStore(Protocol):
    async def ping(self) -> None: ...

    # profiles
    async def get_profile(self, user_id: uuid.UUID) -> Optional[Profile]: ...

    async def get_profile_by_username(
        self, username: str, *, exclude_user_id: Optional[uuid.UUID] = None
    ) -> Optional[Profile]: ...

    async def list_profiles(
        self, user_ids: Optional[Sequence[uuid.UUID]] = None
    ) -> list[Profile]:
        """Profiles ordered by created_at descending."""
        ...

    async def insert_profile(self, profile: Profile) -> Profile: ...

    async def update_profile_username(self, user_id: uuid.UUID, username: str) -> bool:
        """Rename the profile keyed by user_id. False if no profile matched."""
        ...

    async def upsert_profile(self, user_id: uuid.UUID, username: str) -> Profile:
        """Insert or update the profile keyed by user_id."""
        ...

    # user_roles
    async def get_role(self, user_id: uuid.UUID) -> Optional[RoleAssignment]: ...

    async def list_roles(self, role: Optional[str] = None) -> list[RoleAssignment]: ...

    async def insert_role(self, assignment: RoleAssignment) -> RoleAssignment: ...

    async def delete_roles(self, user_id: uuid.UUID) -> None: ...

    # tasks
    async def insert_task(self, task: Task) -> Task: ...

    async def get_task(self, task_id: uuid.UUID) -> Optional[Task]: ...

    async def list_tasks(self, *, assigned_to: Optional[uuid.UUID] = None) -> list[Task]:
        """Tasks ordered by created_at descending."""
        ...

    async def update_task(self, task_id: uuid.UUID, values: dict[str, Any]) -> Optional[Task]: ...

    async def delete_task(self, task_id: uuid.UUID) -> bool: ...

    # notifications
    async def insert_notification(self, notification: Notification) -> Notification: ...

    async def list_notifications(self, user_id: uuid.UUID) -> list[Notification]:
        """A user's notifications, newest first."""
        ...

    async def mark_notification_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool: ...

    async def mark_all_notifications_read(self, user_id: uuid.UUID) -> int: ...


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

def get_identity_store(request: Request) -> IdentityStore:
    return request.app.state.identity_store


def get_relational_store(request: Request) -> RelationalStore:
    return request.app.state.relational_store
