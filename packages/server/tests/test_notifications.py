"""
Tests for the notification feed and its best-effort writers.
"""

from __future__ import annotations

import uuid

import pytest

from app.core.auth import Caller
from app.core.errors import NotFoundError
from app.services import notifications as notification_service
from taskflow_shared.schemas.common import Role


class TestWriters:
    @pytest.mark.asyncio
    async def test_notify_failure_is_logged_not_raised(self, relational_store):
        relational_store.fail_on.add("insert_notification")

        result = await notification_service.notify(relational_store, uuid.uuid4(), "hello")

        assert result is None

    @pytest.mark.asyncio
    async def test_notify_admins_fans_out(self, relational_store, make_user):
        await make_user("ada", role="admin")
        await make_user("grace", role="admin")
        await make_user("bob", role="member")

        sent = await notification_service.notify_admins(relational_store, "done")

        assert sent == 2
        assert len(relational_store.notifications) == 2

    @pytest.mark.asyncio
    async def test_admin_lookup_failure_sends_nothing(self, relational_store, make_user):
        await make_user("ada", role="admin")
        relational_store.fail_on.add("list_roles")

        assert await notification_service.notify_admins(relational_store, "done") == 0


class TestFeed:
    @pytest.mark.asyncio
    async def test_list_newest_first_with_unread_count(self, relational_store, make_user):
        uid, _ = await make_user("bob")
        caller = Caller(uid, Role.MEMBER)
        for message in ("one", "two", "three"):
            await notification_service.notify(relational_store, uid, message)
        await notification_service.notify(relational_store, uuid.uuid4(), "someone else")

        items, unread = await notification_service.list_notifications(caller, relational_store)

        assert [n.message for n in items] == ["three", "two", "one"]
        assert unread == 3

    @pytest.mark.asyncio
    async def test_mark_read_only_own(self, relational_store, make_user):
        uid, _ = await make_user("bob")
        other, _ = await make_user("eve")
        note = await notification_service.notify(relational_store, uid, "for bob")

        with pytest.raises(NotFoundError):
            await notification_service.mark_read(Caller(other, Role.MEMBER), note.id, relational_store)
        assert note.is_read is False

        await notification_service.mark_read(Caller(uid, Role.MEMBER), note.id, relational_store)
        assert note.is_read is True

    @pytest.mark.asyncio
    async def test_mark_all_read(self, relational_store, make_user):
        uid, _ = await make_user("bob")
        for message in ("one", "two"):
            await notification_service.notify(relational_store, uid, message)

        count = await notification_service.mark_all_read(Caller(uid, Role.MEMBER), relational_store)

        assert count == 2
        _, unread = await notification_service.list_notifications(
            Caller(uid, Role.MEMBER), relational_store
        )
        assert unread == 0


class TestNotificationEndpoints:
    @pytest.mark.asyncio
    async def test_feed_roundtrip(self, client, make_user, bearer, relational_store):
        uid, token = await make_user("bob")
        note = await notification_service.notify(relational_store, uid, "hello bob")

        response = await client.get("/api/notifications", headers=bearer(token))
        assert response.status_code == 200
        body = response.json()
        assert body["unread_count"] == 1
        assert body["data"][0]["message"] == "hello bob"

        response = await client.post(f"/api/notifications/{note.id}/read", headers=bearer(token))
        assert response.json() == {"success": True}

        response = await client.get("/api/notifications", headers=bearer(token))
        assert response.json()["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_mark_unknown_is_404(self, client, make_user, bearer):
        _, token = await make_user("bob")
        response = await client.post(
            f"/api/notifications/{uuid.uuid4()}/read", headers=bearer(token)
        )
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_read_all(self, client, make_user, bearer, relational_store):
        uid, token = await make_user("bob")
        await notification_service.notify(relational_store, uid, "a")
        await notification_service.notify(relational_store, uid, "b")

        response = await client.post("/api/notifications/read-all", headers=bearer(token))

        assert response.status_code == 200
        assert all(n.is_read for n in relational_store.notifications_for(uid))
