"""
Supabase-backed implementations of the identity and relational stores.

Both share one async client created with the service-role key, so every call
bypasses row-level security. The client is built once at startup and passed
around by reference.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

import httpx
import structlog
from fastapi.encoders import jsonable_encoder
from supabase import AsyncClient, AuthApiError, AuthError, PostgrestAPIError, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from app.core.config import Settings
from app.core.store import StoreError
from app.models.identity import Identity
from app.models.notification import Notification
from app.models.profile import Profile
from app.models.task import Task
from app.models.user_role import RoleAssignment

log = structlog.get_logger()

PROFILES = "profiles"
USER_ROLES = "user_roles"
TASKS = "tasks"
NOTIFICATIONS = "notifications"

LIST_USERS_PAGE_SIZE = 1000


async def create_supabase_client(settings: Settings) -> AsyncClient:
    """Build the service-role client. Sessions are never persisted or refreshed."""
    return await acreate_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
        options=AsyncClientOptions(auto_refresh_token=False, persist_session=False),
    )


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate client-library failures into StoreError."""
    try:
        yield
    except AuthError as exc:
        raise StoreError(exc.message or str(exc), code=getattr(exc, "code", None)) from exc
    except PostgrestAPIError as exc:
        raise StoreError(exc.message or str(exc), code=exc.code) from exc
    except httpx.HTTPError as exc:
        raise StoreError(f"{operation}: {exc}") from exc


def _payload(values: dict[str, Any]) -> dict[str, Any]:
    return jsonable_encoder(values)


def _identity(user: Any) -> Identity:
    return Identity.model_validate(
        {
            "id": user.id,
            "email": user.email,
            "user_metadata": user.user_metadata or {},
            "email_confirmed_at": user.email_confirmed_at,
            "created_at": user.created_at,
        }
    )


# ---------------------------------------------------------------------------
# Identity store (auth admin API)
# ---------------------------------------------------------------------------


class SupabaseIdentityStore:
    def __init__(self, client: AsyncClient):
        self._client = client

    async def create_identity(
        self, email: str, password: str, *, metadata: Optional[dict] = None
    ) -> Identity:
        attributes: dict[str, Any] = {
            "email": email,
            "password": password,
            "email_confirm": True,
        }
        if metadata:
            attributes["user_metadata"] = metadata
        with _store_errors("create_identity"):
            response = await self._client.auth.admin.create_user(attributes)
        if response.user is None:
            raise StoreError("Identity store returned no user")
        return _identity(response.user)

    async def update_identity(
        self,
        user_id: uuid.UUID,
        *,
        password: Optional[str] = None,
        metadata: Optional[dict] = None,
        email_confirm: Optional[bool] = None,
    ) -> Identity:
        attributes: dict[str, Any] = {}
        if password is not None:
            attributes["password"] = password
        if metadata is not None:
            attributes["user_metadata"] = metadata
        if email_confirm is not None:
            attributes["email_confirm"] = email_confirm
        with _store_errors("update_identity"):
            response = await self._client.auth.admin.update_user_by_id(str(user_id), attributes)
        if response.user is None:
            raise StoreError("Identity store returned no user")
        return _identity(response.user)

    async def delete_identity(self, user_id: uuid.UUID) -> None:
        with _store_errors("delete_identity"):
            await self._client.auth.admin.delete_user(str(user_id))

    async def list_identities(self) -> list[Identity]:
        identities: list[Identity] = []
        page = 1
        while True:
            with _store_errors("list_identities"):
                users = await self._client.auth.admin.list_users(
                    page=page, per_page=LIST_USERS_PAGE_SIZE
                )
            identities.extend(_identity(u) for u in users)
            if len(users) < LIST_USERS_PAGE_SIZE:
                return identities
            page += 1

    async def get_identity_for_token(self, token: str) -> Optional[Identity]:
        try:
            with _store_errors("get_identity_for_token"):
                response = await self._client.auth.get_user(token)
        except StoreError as exc:
            if isinstance(exc.__cause__, AuthApiError):
                log.info("auth.token_rejected", error=exc.message)
                return None
            raise
        if response is None or response.user is None:
            return None
        return _identity(response.user)


# ---------------------------------------------------------------------------
# Relational store (PostgREST tables)
# ---------------------------------------------------------------------------


class SupabaseRelationalStore:
    def __init__(self, client: AsyncClient):
        self._client = client

    async def ping(self) -> None:
        with _store_errors("ping"):
            await self._client.table(USER_ROLES).select("id").limit(1).execute()

    # -- profiles -----------------------------------------------------------

    async def get_profile(self, user_id: uuid.UUID) -> Optional[Profile]:
        with _store_errors("get_profile"):
            result = await (
                self._client.table(PROFILES)
                .select("*")
                .eq("user_id", str(user_id))
                .limit(1)
                .execute()
            )
        return Profile.model_validate(result.data[0]) if result.data else None

    async def get_profile_by_username(
        self, username: str, *, exclude_user_id: Optional[uuid.UUID] = None
    ) -> Optional[Profile]:
        query = self._client.table(PROFILES).select("*").eq("username", username)
        if exclude_user_id is not None:
            query = query.neq("user_id", str(exclude_user_id))
        with _store_errors("get_profile_by_username"):
            result = await query.limit(1).execute()
        return Profile.model_validate(result.data[0]) if result.data else None

    async def list_profiles(
        self, user_ids: Optional[Sequence[uuid.UUID]] = None
    ) -> list[Profile]:
        query = self._client.table(PROFILES).select("*")
        if user_ids is not None:
            if not user_ids:
                return []
            query = query.in_("user_id", [str(uid) for uid in user_ids])
        with _store_errors("list_profiles"):
            result = await query.order("created_at", desc=True).execute()
        return [Profile.model_validate(row) for row in result.data]

    async def insert_profile(self, profile: Profile) -> Profile:
        with _store_errors("insert_profile"):
            result = await (
                self._client.table(PROFILES)
                .insert(profile.model_dump(mode="json"))
                .execute()
            )
        return Profile.model_validate(result.data[0])

    async def update_profile_username(self, user_id: uuid.UUID, username: str) -> bool:
        with _store_errors("update_profile_username"):
            result = await (
                self._client.table(PROFILES)
                .update({"username": username})
                .eq("user_id", str(user_id))
                .execute()
            )
        return bool(result.data)

    async def upsert_profile(self, user_id: uuid.UUID, username: str) -> Profile:
        with _store_errors("upsert_profile"):
            result = await (
                self._client.table(PROFILES)
                .upsert({"user_id": str(user_id), "username": username}, on_conflict="user_id")
                .execute()
            )
        return Profile.model_validate(result.data[0])

    # -- user_roles ---------------------------------------------------------

    async def get_role(self, user_id: uuid.UUID) -> Optional[RoleAssignment]:
        with _store_errors("get_role"):
            result = await (
                self._client.table(USER_ROLES)
                .select("*")
                .eq("user_id", str(user_id))
                .limit(1)
                .execute()
            )
        return RoleAssignment.model_validate(result.data[0]) if result.data else None

    async def list_roles(self, role: Optional[str] = None) -> list[RoleAssignment]:
        query = self._client.table(USER_ROLES).select("*")
        if role is not None:
            query = query.eq("role", role)
        with _store_errors("list_roles"):
            result = await query.execute()
        return [RoleAssignment.model_validate(row) for row in result.data]

    async def insert_role(self, assignment: RoleAssignment) -> RoleAssignment:
        with _store_errors("insert_role"):
            result = await (
                self._client.table(USER_ROLES)
                .insert(assignment.model_dump(mode="json"))
                .execute()
            )
        return RoleAssignment.model_validate(result.data[0])

    async def delete_roles(self, user_id: uuid.UUID) -> None:
        with _store_errors("delete_roles"):
            await self._client.table(USER_ROLES).delete().eq("user_id", str(user_id)).execute()

    # -- tasks --------------------------------------------------------------

    async def insert_task(self, task: Task) -> Task:
        with _store_errors("insert_task"):
            result = await (
                self._client.table(TASKS).insert(task.model_dump(mode="json")).execute()
            )
        return Task.model_validate(result.data[0])

    async def get_task(self, task_id: uuid.UUID) -> Optional[Task]:
        with _store_errors("get_task"):
            result = await (
                self._client.table(TASKS).select("*").eq("id", str(task_id)).limit(1).execute()
            )
        return Task.model_validate(result.data[0]) if result.data else None

    async def list_tasks(self, *, assigned_to: Optional[uuid.UUID] = None) -> list[Task]:
        query = self._client.table(TASKS).select("*")
        if assigned_to is not None:
            query = query.eq("assigned_to", str(assigned_to))
        with _store_errors("list_tasks"):
            result = await query.order("created_at", desc=True).execute()
        return [Task.model_validate(row) for row in result.data]

    async def update_task(self, task_id: uuid.UUID, values: dict[str, Any]) -> Optional[Task]:
        with _store_errors("update_task"):
            result = await (
                self._client.table(TASKS)
                .update(_payload(values))
                .eq("id", str(task_id))
                .execute()
            )
        return Task.model_validate(result.data[0]) if result.data else None

    async def delete_task(self, task_id: uuid.UUID) -> bool:
        with _store_errors("delete_task"):
            result = await self._client.table(TASKS).delete().eq("id", str(task_id)).execute()
        return bool(result.data)

    # -- notifications ------------------------------------------------------

    async def insert_notification(self, notification: Notification) -> Notification:
        with _store_errors("insert_notification"):
            result = await (
                self._client.table(NOTIFICATIONS)
                .insert(notification.model_dump(mode="json"))
                .execute()
            )
        return Notification.model_validate(result.data[0])

    async def list_notifications(self, user_id: uuid.UUID) -> list[Notification]:
        with _store_errors("list_notifications"):
            result = await (
                self._client.table(NOTIFICATIONS)
                .select("*")
                .eq("user_id", str(user_id))
                .order("created_at", desc=True)
                .execute()
            )
        return [Notification.model_validate(row) for row in result.data]

    async def mark_notification_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        with _store_errors("mark_notification_read"):
            result = await (
                self._client.table(NOTIFICATIONS)
                .update({"is_read": True})
                .eq("id", str(notification_id))
                .eq("user_id", str(user_id))
                .execute()
            )
        return bool(result.data)

    async def mark_all_notifications_read(self, user_id: uuid.UUID) -> int:
        with _store_errors("mark_all_notifications_read"):
            result = await (
                self._client.table(NOTIFICATIONS)
                .update({"is_read": True})
                .eq("user_id", str(user_id))
                .eq("is_read", "false")
                .execute()
            )
        return len(result.data)
