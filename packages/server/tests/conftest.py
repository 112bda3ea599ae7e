"""
Shared fixtures: in-memory stand-ins for the identity and relational stores.

The fakes model what the hosted backend guarantees and nothing more: unique
``profiles.username``, unique ``profiles.user_id`` and ``user_roles.user_id``
(Postgres code 23505), and cascade of profile, role and notification rows when
an identity is deleted. Any method can be made to fail via ``fail_on``.
"""

from __future__ import annotations

import os

os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("LOG_FORMAT", "text")

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.store import UNIQUE_VIOLATION, StoreError, get_identity_store, get_relational_store
from app.models.identity import Identity
from app.models.notification import Notification
from app.models.profile import Profile
from app.models.task import Task
from app.models.user_role import RoleAssignment

SERVICE_KEY = os.environ["SUPABASE_SERVICE_ROLE_KEY"]


class _Failable:
    def __init__(self):
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise StoreError(f"simulated {name} failure")


class InMemoryRelationalStore(_Failable):
    def __init__(self):
        super().__init__()
        self.profiles: dict[uuid.UUID, Profile] = {}
        self.roles: list[RoleAssignment] = []
        self.tasks: dict[uuid.UUID, Task] = {}
        self.notifications: dict[uuid.UUID, Notification] = {}

    async def ping(self) -> None:
        self._call("ping")

    # profiles

    async def get_profile(self, user_id):
        self._call("get_profile")
        return self.profiles.get(user_id)

    async def get_profile_by_username(self, username, *, exclude_user_id=None):
        self._call("get_profile_by_username")
        for profile in self.profiles.values():
            if profile.username == username and profile.user_id != exclude_user_id:
                return profile
        return None

    async def list_profiles(self, user_ids: Optional[Sequence[uuid.UUID]] = None):
        self._call("list_profiles")
        items = list(reversed(list(self.profiles.values())))
        if user_ids is not None:
            items = [p for p in items if p.user_id in set(user_ids)]
        return items

    def _check_username(self, username: str, user_id: uuid.UUID) -> None:
        for profile in self.profiles.values():
            if profile.username == username and profile.user_id != user_id:
                raise StoreError(
                    'duplicate key value violates unique constraint "idx_profiles_username"',
                    code=UNIQUE_VIOLATION,
                )

    async def insert_profile(self, profile: Profile):
        self._call("insert_profile")
        if profile.user_id in self.profiles:
            raise StoreError("duplicate profile", code=UNIQUE_VIOLATION)
        self._check_username(profile.username, profile.user_id)
        self.profiles[profile.user_id] = profile
        return profile

    async def update_profile_username(self, user_id, username):
        self._call("update_profile_username")
        self._check_username(username, user_id)
        if user_id not in self.profiles:
            return False
        self.profiles[user_id].username = username
        return True

    async def upsert_profile(self, user_id, username):
        self._call("upsert_profile")
        self._check_username(username, user_id)
        if user_id in self.profiles:
            self.profiles[user_id].username = username
        else:
            self.profiles[user_id] = Profile(user_id=user_id, username=username)
        return self.profiles[user_id]

    # user_roles

    async def get_role(self, user_id):
        self._call("get_role")
        return next((r for r in self.roles if r.user_id == user_id), None)

    async def list_roles(self, role: Optional[str] = None):
        self._call("list_roles")
        return [r for r in self.roles if role is None or r.role == role]

    async def insert_role(self, assignment: RoleAssignment):
        self._call("insert_role")
        if any(r.user_id == assignment.user_id for r in self.roles):
            raise StoreError("duplicate role", code=UNIQUE_VIOLATION)
        self.roles.append(assignment)
        return assignment

    async def delete_roles(self, user_id):
        self._call("delete_roles")
        self.roles = [r for r in self.roles if r.user_id != user_id]

    def role_of(self, user_id) -> Optional[str]:
        rows = [r.role for r in self.roles if r.user_id == user_id]
        assert len(rows) <= 1, "more than one role row"
        return rows[0] if rows else None

    # tasks

    async def insert_task(self, task: Task):
        self._call("insert_task")
        self.tasks[task.id] = task
        return task

    async def get_task(self, task_id):
        self._call("get_task")
        return self.tasks.get(task_id)

    async def list_tasks(self, *, assigned_to=None):
        self._call("list_tasks")
        items = list(reversed(list(self.tasks.values())))
        if assigned_to is not None:
            items = [t for t in items if t.assigned_to == assigned_to]
        return items

    async def update_task(self, task_id, values: dict[str, Any]):
        self._call("update_task")
        task = self.tasks.get(task_id)
        if task is None:
            return None
        for key, value in values.items():
            setattr(task, key, value)
        return task

    async def delete_task(self, task_id):
        self._call("delete_task")
        if self.tasks.pop(task_id, None) is None:
            return False
        for nid in [n.id for n in self.notifications.values() if n.task_id == task_id]:
            del self.notifications[nid]
        return True

    # notifications

    async def insert_notification(self, notification: Notification):
        self._call("insert_notification")
        self.notifications[notification.id] = notification
        return notification

    async def list_notifications(self, user_id):
        self._call("list_notifications")
        return [n for n in reversed(list(self.notifications.values())) if n.user_id == user_id]

    async def mark_notification_read(self, notification_id, user_id):
        self._call("mark_notification_read")
        notification = self.notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return False
        notification.is_read = True
        return True

    async def mark_all_notifications_read(self, user_id):
        self._call("mark_all_notifications_read")
        count = 0
        for notification in self.notifications.values():
            if notification.user_id == user_id and not notification.is_read:
                notification.is_read = True
                count += 1
        return count

    def notifications_for(self, user_id) -> list[Notification]:
        return [n for n in self.notifications.values() if n.user_id == user_id]

    # cascade from auth.users

    def cascade_delete(self, user_id) -> None:
        self.profiles.pop(user_id, None)
        self.roles = [r for r in self.roles if r.user_id != user_id]
        for nid in [n.id for n in self.notifications.values() if n.user_id == user_id]:
            del self.notifications[nid]


class InMemoryIdentityStore(_Failable):
    def __init__(self, relational: InMemoryRelationalStore):
        super().__init__()
        self.relational = relational
        self.identities: dict[uuid.UUID, Identity] = {}
        self.passwords: dict[uuid.UUID, str] = {}
        self.tokens: dict[str, uuid.UUID] = {}

    async def create_identity(self, email, password, *, metadata=None):
        self._call("create_identity")
        if any(i.email == email for i in self.identities.values()):
            raise StoreError(
                "A user with this email address has already been registered",
                code="email_exists",
            )
        if len(password) < 6:
            raise StoreError("Password should be at least 6 characters.", code="weak_password")
        now = datetime.now(timezone.utc)
        identity = Identity(
            id=uuid.uuid4(),
            email=email,
            user_metadata=dict(metadata or {}),
            email_confirmed_at=now,
            created_at=now,
        )
        self.identities[identity.id] = identity
        self.passwords[identity.id] = password
        return identity

    async def update_identity(self, user_id, *, password=None, metadata=None, email_confirm=None):
        self._call("update_identity")
        identity = self.identities.get(user_id)
        if identity is None:
            raise StoreError("User not found", code="user_not_found")
        if password is not None:
            self.passwords[user_id] = password
        if metadata is not None:
            identity.user_metadata = {**identity.user_metadata, **metadata}
        if email_confirm:
            identity.email_confirmed_at = datetime.now(timezone.utc)
        return identity

    async def delete_identity(self, user_id):
        self._call("delete_identity")
        if self.identities.pop(user_id, None) is None:
            raise StoreError("User not found", code="user_not_found")
        self.passwords.pop(user_id, None)
        self.tokens = {t: uid for t, uid in self.tokens.items() if uid != user_id}
        self.relational.cascade_delete(user_id)

    async def list_identities(self):
        self._call("list_identities")
        return list(self.identities.values())

    async def get_identity_for_token(self, token):
        self._call("get_identity_for_token")
        user_id = self.tokens.get(token)
        return self.identities.get(user_id) if user_id else None

    def issue_token(self, user_id: uuid.UUID) -> str:
        token = f"token-{uuid.uuid4().hex}"
        self.tokens[token] = user_id
        return token


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def relational_store() -> InMemoryRelationalStore:
    return InMemoryRelationalStore()


@pytest.fixture
def identity_store(relational_store) -> InMemoryIdentityStore:
    return InMemoryIdentityStore(relational_store)


@pytest.fixture
def make_user(identity_store, relational_store):
    """Seed a consistent user directly in the fakes. Returns (user_id, token)."""

    async def _make(username: str, role: Optional[str] = "member", email: Optional[str] = None):
        identity = await identity_store.create_identity(
            email or f"{username}@example.com", "password123"
        )
        await relational_store.insert_profile(Profile(user_id=identity.id, username=username))
        if role is not None:
            await relational_store.insert_role(RoleAssignment(user_id=identity.id, role=role))
        identity_store.calls.clear()
        relational_store.calls.clear()
        return identity.id, identity_store.issue_token(identity.id)

    return _make


@pytest.fixture
def app(identity_store, relational_store):
    from app.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_identity_store] = lambda: identity_store
    fastapi_app.dependency_overrides[get_relational_store] = lambda: relational_store
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def service_headers():
    return {"Authorization": f"Bearer {SERVICE_KEY}"}


@pytest.fixture
def bearer():
    """Build an Authorization header for an access token."""
    return lambda token: {"Authorization": f"Bearer {token}"}
