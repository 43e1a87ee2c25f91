"""Tests for the narrative service: generation, caching, regeneration and assets."""

import uuid

import pytest
from sqlalchemy import func, select

from app.errors import AppError
from app.models.narrative import NARRATIVE_NEEDS_REVIEW, NARRATIVE_READY, Narrative
from app.services.content_cache import ContentCache
from app.services.narrative_service import (
    CACHE_DATA_TYPE,
    CACHED_MODEL,
    create_asset,
    generate_narrative,
    get_owned_narrative,
    list_narratives,
    narrative_cache_params,
    normalize_narrative,
    regenerate_narrative,
)
from conftest import VALID_NARRATIVE, create_user, fake_llm

pytestmark = pytest.mark.asyncio

INPUTS = {
    "business_name": "Joe's Lawn Care",
    "industry": "Lawn Care",
    "google_rating": 4.5,
    "num_reviews": 127,
    "monthly_visits": 2000,
    "avg_transaction": 75.0,
}


class TestHelpers:
    async def test_cache_params_normalize_names(self) -> None:
        a = narrative_cache_params({**INPUTS, "business_name": "  JOE'S Lawn Care "})
        b = narrative_cache_params(INPUTS)
        assert a == b

    async def test_cache_params_ignore_contact_details(self) -> None:
        a = narrative_cache_params({**INPUTS, "contact_name": "Joe"})
        assert "contact_name" not in a
        assert a == narrative_cache_params(INPUTS)

    async def test_normalize_wraps_single_items_in_lists(self) -> None:
        result = normalize_narrative({"pain_points": {"title": "One"}, "extra": "dropped"})
        assert result["pain_points"] == [{"title": "One"}]
        assert "extra" not in result
        assert result["business_story"] is None


class TestGenerateNarrative:
    async def test_valid_narrative_is_ready_and_cached(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        narrative, from_cache = await generate_narrative(db_session, user.id, INPUTS, fake_llm(VALID_NARRATIVE))

        assert from_cache is False
        assert narrative.status == NARRATIVE_READY
        assert narrative.validation["is_valid"] is True
        assert narrative.input_tokens == 120
        assert narrative.output_tokens == 480
        assert narrative.roi_data["current"]["annual_revenue"] > 0
        assert narrative.content["business_story"]["headline"] == VALID_NARRATIVE["business_story"]["headline"]

        cached = await ContentCache(db_session).get(CACHE_DATA_TYPE, narrative_cache_params(INPUTS))
        assert cached is not None
        assert cached.data["content"] == narrative.content

    async def test_second_request_is_served_from_cache(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        await generate_narrative(db_session, user.id, INPUTS, fake_llm(VALID_NARRATIVE))

        # A model that would fail proves the cache answered
        narrative, from_cache = await generate_narrative(db_session, user.id, INPUTS, fake_llm("not json"))

        assert from_cache is True
        assert narrative.model == CACHED_MODEL
        assert narrative.input_tokens == 0
        assert narrative.status == NARRATIVE_READY
        count = await db_session.scalar(select(func.count()).select_from(Narrative))
        assert count == 2

    async def test_incomplete_narrative_needs_review_and_is_not_cached(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        partial = {"business_story": {"headline": "Only a headline"}}
        narrative, _ = await generate_narrative(db_session, user.id, INPUTS, fake_llm(partial))

        assert narrative.status == NARRATIVE_NEEDS_REVIEW
        assert narrative.validation["is_valid"] is False
        assert await ContentCache(db_session).get(CACHE_DATA_TYPE, narrative_cache_params(INPUTS)) is None

    async def test_unparseable_reply_raises_503(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        with pytest.raises(AppError) as exc_info:
            await generate_narrative(db_session, user.id, INPUTS, fake_llm("not json"))

        assert exc_info.value.status_code == 503
        assert exc_info.value.detail["error"] == "AI temporarily unavailable"
        assert exc_info.value.detail["fallback_available"] is True


class TestRegenerateNarrative:
    async def test_regenerates_requested_section(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        llm = fake_llm(
            VALID_NARRATIVE,
            {"business_story": {**VALID_NARRATIVE["business_story"], "headline": "A fresh headline"}},
        )
        narrative, _ = await generate_narrative(db_session, user.id, INPUTS, llm)

        updated = await regenerate_narrative(db_session, narrative, llm, ["business_story"], "Punchier please")

        assert updated.version == 2
        assert updated.regenerated_sections == ["business_story"]
        assert updated.content["business_story"]["headline"] == "A fresh headline"
        assert updated.content["pain_points"] == VALID_NARRATIVE["pain_points"]
        assert updated.input_tokens == 240
        assert updated.output_tokens == 960

    async def test_unknown_section_rejected(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        narrative, _ = await generate_narrative(db_session, user.id, INPUTS, fake_llm(VALID_NARRATIVE))

        with pytest.raises(AppError) as exc_info:
            await regenerate_narrative(db_session, narrative, fake_llm(VALID_NARRATIVE), ["intro"])

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail["error"] == "Invalid section"
        assert narrative.version == 1

    async def test_model_failure_leaves_narrative_unchanged(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        narrative, _ = await generate_narrative(db_session, user.id, INPUTS, fake_llm(VALID_NARRATIVE))

        with pytest.raises(AppError):
            await regenerate_narrative(db_session, narrative, fake_llm("still not json"))

        assert narrative.version == 1
        assert narrative.regenerated_sections == []


class TestOwnershipAndAssets:
    async def test_owner_loads_narrative(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        narrative, _ = await generate_narrative(db_session, user.id, INPUTS, fake_llm(VALID_NARRATIVE))

        loaded = await get_owned_narrative(db_session, narrative.id, user.id)
        assert loaded.id == narrative.id

    async def test_other_user_gets_403(self, db_session) -> None:
        owner = await create_user(db_session, "growth")
        other = await create_user(db_session, "growth")
        narrative, _ = await generate_narrative(db_session, owner.id, INPUTS, fake_llm(VALID_NARRATIVE))

        with pytest.raises(AppError) as exc_info:
            await get_owned_narrative(db_session, narrative.id, other.id)
        assert exc_info.value.status_code == 403

    async def test_missing_narrative_gets_404(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        with pytest.raises(AppError) as exc_info:
            await get_owned_narrative(db_session, uuid.uuid4(), user.id)
        assert exc_info.value.status_code == 404

    async def test_list_is_scoped_to_user(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        other = await create_user(db_session, "growth")
        await generate_narrative(db_session, user.id, INPUTS, fake_llm(VALID_NARRATIVE))
        await generate_narrative(db_session, other.id, {**INPUTS, "business_name": "Other Co"}, fake_llm(VALID_NARRATIVE))

        items, total = await list_narratives(db_session, user.id)
        assert total == 1
        assert items[0].user_id == user.id

    async def test_create_asset_persists_formatted_output(self, db_session) -> None:
        user = await create_user(db_session, "growth")
        narrative, _ = await generate_narrative(db_session, user.id, INPUTS, fake_llm(VALID_NARRATIVE))

        asset = await create_asset(db_session, narrative, "email_sequence")

        assert asset.formatter_type == "email_sequence"
        assert asset.user_id == user.id
        assert len(asset.content["emails"]) == 5
        assert asset.word_count > 0
        assert "Joe&#x27;s Lawn Care" in asset.html or "Joe's Lawn Care" in asset.html
