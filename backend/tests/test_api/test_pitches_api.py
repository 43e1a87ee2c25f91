"""Tests for the pitches API: generation, quota, white-label gate, export and ownership."""

import uuid

import pytest

from app.services.usage_service import get_usage, increment_usage
from conftest import create_user, headers_for

pytestmark = pytest.mark.asyncio

PROSPECT = {
    "business_name": "Joe's Lawn Care",
    "industry": "Lawn Care",
    "contact_name": "Joe Smith",
    "address": "Austin, Texas",
    "google_rating": 4.5,
    "num_reviews": 127,
    "pitch_level": 2,
}


async def _create(client, headers, **overrides) -> dict:
    response = await client.post("/api/v1/pitches", json={**PROSPECT, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreatePitch:
    async def test_create_returns_rendered_pitch(self, client, auth_headers, test_user, db_session) -> None:
        response = await client.post("/api/v1/pitches", json=PROSPECT, headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["business_name"] == "Joe's Lawn Care"
        assert data["pitch_level"] == 2
        assert data["source"] == "single"
        assert "<html" in data["html"].lower()
        assert data["roi_data"]["current"]["monthly_revenue"] > 0

        usage = await get_usage(db_session, test_user.id)
        assert usage.pitches_generated == 1

    async def test_requires_auth(self, client) -> None:
        response = await client.post("/api/v1/pitches", json=PROSPECT)
        assert response.status_code == 401
        assert response.json()["error"] == "Authentication required"

    async def test_missing_fields_fail_validation(self, client, auth_headers) -> None:
        response = await client.post("/api/v1/pitches", json={"industry": "Lawn Care"}, headers=auth_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert any(e["field"].endswith("business_name") for e in body["errors"])

    async def test_level_out_of_range_rejected(self, client, auth_headers) -> None:
        response = await client.post("/api/v1/pitches", json={**PROSPECT, "pitch_level": 4}, headers=auth_headers)
        assert response.status_code == 400

    async def test_quota_exhausted_returns_429(self, client, auth_headers, test_user, db_session) -> None:
        await increment_usage(db_session, test_user.id, pitches_generated=10)
        await db_session.commit()

        response = await client.post("/api/v1/pitches", json=PROSPECT, headers=auth_headers)

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Usage limit reached"
        assert body["usage"] == {"current": 10, "limit": 10}
        assert body["upgrade_plan"]["name"] == "growth"

    async def test_scale_plan_is_unlimited(self, client, scale_headers, scale_user, db_session) -> None:
        await increment_usage(db_session, scale_user.id, pitches_generated=10_000)
        await db_session.commit()

        response = await client.post("/api/v1/pitches", json=PROSPECT, headers=scale_headers)
        assert response.status_code == 201


class TestWhiteLabel:
    async def test_starter_cannot_hide_branding(self, client, auth_headers) -> None:
        response = await client.post(
            "/api/v1/pitches", json={**PROSPECT, "hide_branding": True}, headers=auth_headers
        )
        assert response.status_code == 403
        assert response.json()["required_feature"] == "white_label"

    async def test_growth_can_hide_branding(self, client, growth_headers) -> None:
        data = await _create(client, growth_headers, hide_branding=True, primary_color="#112233")
        assert data["options"] == {"hide_branding": True}
        assert "#112233" in data["html"]


class TestReadAndDelete:
    async def test_list_only_own_pitches(self, client, auth_headers, db_session) -> None:
        other = await create_user(db_session, "starter")
        await _create(client, auth_headers)
        await _create(client, auth_headers, business_name="Sunrise Bakery")
        await _create(client, headers_for(other), business_name="Not Mine")

        response = await client.get("/api/v1/pitches", headers=auth_headers)

        assert response.status_code == 200
        page = response.json()["data"]
        assert page["total"] == 2
        assert {p["business_name"] for p in page["items"]} == {"Joe's Lawn Care", "Sunrise Bakery"}
        assert "html" not in page["items"][0]

    async def test_get_html(self, client, auth_headers) -> None:
        pitch = await _create(client, auth_headers)

        response = await client.get(f"/api/v1/pitches/{pitch['id']}/html", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Joe" in response.text

    async def test_other_users_pitch_is_forbidden(self, client, auth_headers, db_session) -> None:
        pitch = await _create(client, auth_headers)
        other = await create_user(db_session, "starter")

        response = await client.get(f"/api/v1/pitches/{pitch['id']}", headers=headers_for(other))

        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Access denied"}

    async def test_unknown_pitch_404(self, client, auth_headers) -> None:
        response = await client.get(f"/api/v1/pitches/{uuid.uuid4()}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Pitch not found"

    async def test_delete(self, client, auth_headers) -> None:
        pitch = await _create(client, auth_headers)

        response = await client.delete(f"/api/v1/pitches/{pitch['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Pitch deleted"

        response = await client.get(f"/api/v1/pitches/{pitch['id']}", headers=auth_headers)
        assert response.status_code == 404


class TestPptxExport:
    async def test_scale_downloads_deck(self, client, scale_headers) -> None:
        pitch = await _create(client, scale_headers)

        response = await client.get(f"/api/v1/pitches/{pitch['id']}/pptx", headers=scale_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.presentationml.presentation"
        )
        assert 'filename="Joe_s_Lawn_Care_pitch.pptx"' in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    async def test_growth_cannot_export(self, client, growth_headers) -> None:
        pitch = await _create(client, growth_headers)

        response = await client.get(f"/api/v1/pitches/{pitch['id']}/pptx", headers=growth_headers)

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "Feature not available"
        assert body["upgrade_plan"]["name"] == "scale"
