"""Tests for the admin API: access control, stats, user edits, usage, bootstrap and cache upkeep."""

import uuid
from datetime import timedelta

import pytest

from app.config import settings
from app.database import utcnow
from app.services.content_cache import ContentCache
from app.services.usage_service import current_period, increment_usage
from conftest import create_user, headers_for

pytestmark = pytest.mark.asyncio


class TestAccessControl:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/api/v1/admin/stats"),
            ("get", "/api/v1/admin/users"),
            ("get", "/api/v1/admin/usage"),
            ("get", "/api/v1/admin/cache/stats"),
            ("post", "/api/v1/admin/cache/cleanup"),
        ],
    )
    async def test_regular_user_forbidden(self, client, scale_headers, method, path) -> None:
        response = await client.request(method, path, headers=scale_headers)

        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"

    async def test_anonymous_unauthorized(self, client) -> None:
        response = await client.get("/api/v1/admin/stats")
        assert response.status_code == 401


class TestStats:
    async def test_stats(self, client, admin_headers, db_session) -> None:
        await create_user(db_session, "growth")

        response = await client.get("/api/v1/admin/stats", headers=admin_headers)

        assert response.status_code == 200
        stats = response.json()["data"]
        # The admin fixture is on the scale plan
        assert stats["users"]["total"] == 2
        assert stats["users"]["by_plan"]["growth"] == 1
        assert stats["users"]["by_plan"]["scale"] == 1
        assert stats["revenue"]["mrr_cents"] == 0


class TestUsers:
    async def test_list_and_filter(self, client, admin_headers, db_session) -> None:
        await create_user(db_session, "growth")
        await create_user(db_session, "starter")

        response = await client.get("/api/v1/admin/users", params={"plan": "growth"}, headers=admin_headers)

        page = response.json()["data"]
        assert page["total"] == 1
        assert page["items"][0]["plan"] == "growth"
        assert "hashed_password" not in page["items"][0]

    async def test_change_plan(self, client, admin_headers, db_session) -> None:
        user = await create_user(db_session, "starter")

        response = await client.patch(
            f"/api/v1/admin/users/{user.id}", json={"plan": "scale"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["plan"] == "scale"
        assert response.json()["message"] == "User updated"

    async def test_deactivated_user_loses_access(self, client, admin_headers, db_session) -> None:
        user = await create_user(db_session, "starter")
        await client.patch(f"/api/v1/admin/users/{user.id}", json={"is_active": False}, headers=admin_headers)

        response = await client.get("/api/v1/pitches", headers=headers_for(user))
        assert response.status_code == 401

    async def test_invalid_plan(self, client, admin_headers, db_session) -> None:
        user = await create_user(db_session, "starter")

        response = await client.patch(
            f"/api/v1/admin/users/{user.id}", json={"plan": "platinum"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid plan"

    async def test_unknown_user(self, client, admin_headers) -> None:
        response = await client.patch(
            f"/api/v1/admin/users/{uuid.uuid4()}", json={"plan": "growth"}, headers=admin_headers
        )
        assert response.status_code == 404


class TestUsage:
    async def test_usage_for_current_period(self, client, admin_headers, db_session) -> None:
        user = await create_user(db_session, "growth")
        await increment_usage(db_session, user.id, pitches_generated=7)
        await db_session.commit()

        response = await client.get("/api/v1/admin/usage", headers=admin_headers)

        data = response.json()["data"]
        assert data["period"] == current_period()
        assert data["totals"]["pitches_generated"] == 7
        assert data["top_users"][0]["email"] == user.email

    async def test_bad_period_format(self, client, admin_headers) -> None:
        response = await client.get("/api/v1/admin/usage", params={"period": "2026-1"}, headers=admin_headers)
        assert response.status_code == 400


class TestBootstrap:
    async def test_bootstrap_without_auth(self, client, db_session) -> None:
        user = await create_user(db_session, "starter", email="founder@example.com")

        response = await client.post(
            "/api/v1/admin/bootstrap",
            json={"secret_key": settings.admin_bootstrap_key, "email": "founder@example.com"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(user.id)
        assert data["role"] == "admin"

    async def test_bootstrap_wrong_key(self, client, db_session) -> None:
        await create_user(db_session, "starter", email="founder@example.com")

        response = await client.post(
            "/api/v1/admin/bootstrap", json={"secret_key": "guess", "email": "founder@example.com"}
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Invalid bootstrap key"


class TestCache:
    async def test_stats_and_cleanup(self, client, admin_headers, db_session) -> None:
        stale = ContentCache(db_session, clock=lambda: utcnow() - timedelta(days=8))
        await stale.set("logos", {"domain": "old.example"}, {"logos": []})
        await ContentCache(db_session).set("logos", {"domain": "new.example"}, {"logos": []})
        await db_session.commit()

        stats = (await client.get("/api/v1/admin/cache/stats", headers=admin_headers)).json()["data"]
        assert stats["total_entries"] == 2
        assert stats["by_type"] == {"logos": 2}

        response = await client.post("/api/v1/admin/cache/cleanup", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"deleted": {"logos": 1}, "total_deleted": 1}
