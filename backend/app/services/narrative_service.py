"""Narrative service: LLM narrative generation, regeneration and formatting.

Generated narratives are validated structurally. Valid ones are cached for
24 hours keyed on the normalized business inputs, so asking for the same
business again costs no tokens and no quota.
"""

import logging
import uuid
from typing import Any

from fastapi import status
from langchain_core.language_models import BaseChatModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AppError
from app.models.narrative import NARRATIVE_NEEDS_REVIEW, NARRATIVE_READY, FormattedAsset, Narrative
from app.pitch.formatters import format_narrative
from app.pitch.narrative_validator import REQUIRED_FIELDS, quick_validate
from app.pitch.roi import calculate_roi
from app.services.ai_client import AIServiceError, generate_json
from app.services.content_cache import ContentCache
from app.services.prompts import NARRATIVE_SYSTEM_PROMPT, build_narrative_prompt, build_regeneration_prompt

logger = logging.getLogger(__name__)

CACHE_DATA_TYPE = "narratives"
NARRATIVE_SECTIONS = REQUIRED_FIELDS
CACHED_MODEL = "cache"


def narrative_cache_params(inputs: dict[str, Any]) -> dict[str, Any]:
    """Parameters that identify a narrative request for caching."""

    def _norm(value: Any) -> str | None:
        return value.strip().lower() if isinstance(value, str) else None

    return {
        "business_name": _norm(inputs.get("business_name")),
        "industry": _norm(inputs.get("industry")),
        "google_rating": inputs.get("google_rating"),
        "num_reviews": inputs.get("num_reviews"),
        "monthly_visits": inputs.get("monthly_visits"),
        "avg_transaction": inputs.get("avg_transaction"),
        "repeat_rate": inputs.get("repeat_rate"),
    }


def prepare_business_data(inputs: dict[str, Any], roi: dict[str, Any]) -> dict[str, Any]:
    data = {key: value for key, value in inputs.items() if value not in (None, "", [])}
    data["roi_projection"] = roi
    return data


def normalize_narrative(data: dict[str, Any]) -> dict[str, Any]:
    """Keep the known sections and coerce list sections to lists."""
    narrative = {section: data.get(section) for section in NARRATIVE_SECTIONS}
    for section in ("pain_points", "value_props", "cta_hooks"):
        value = narrative[section]
        if value is not None and not isinstance(value, list):
            narrative[section] = [value]
    return narrative


def _status_for(validation: dict[str, Any]) -> str:
    return NARRATIVE_READY if validation["is_valid"] else NARRATIVE_NEEDS_REVIEW


def _ai_unavailable() -> AppError:
    return AppError(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "AI temporarily unavailable",
        message="Narrative generation is temporarily unavailable. Please try again shortly.",
        fallback_available=True,
    )


async def generate_narrative(
    db: AsyncSession,
    user_id: uuid.UUID,
    inputs: dict[str, Any],
    llm: BaseChatModel,
) -> tuple[Narrative, bool]:
    """Create a narrative for ``inputs``. Returns ``(narrative, from_cache)``.

    Raises:
        AppError 503: the model failed and nothing was cached.
    """
    cache = ContentCache(db)
    params = narrative_cache_params(inputs)
    roi = calculate_roi(inputs.get("monthly_visits"), inputs.get("avg_transaction"), inputs.get("repeat_rate"))

    cached = await cache.get(CACHE_DATA_TYPE, params)
    if cached is not None:
        narrative = Narrative(
            user_id=user_id,
            business_name=inputs["business_name"],
            industry=inputs["industry"],
            inputs=inputs,
            roi_data=roi,
            content=cached.data["content"],
            validation=cached.data["validation"],
            status=_status_for(cached.data["validation"]),
            model=CACHED_MODEL,
            regenerated_sections=[],
            assets=[],
        )
        db.add(narrative)
        await db.flush()
        logger.info("Narrative cache hit for %s (user %s)", inputs["business_name"], user_id)
        return narrative, True

    try:
        result = await generate_json(
            llm, NARRATIVE_SYSTEM_PROMPT, build_narrative_prompt(prepare_business_data(inputs, roi))
        )
    except AIServiceError as e:
        logger.warning("Narrative generation failed for user %s: %s", user_id, e)
        raise _ai_unavailable() from e

    content = normalize_narrative(result.data)
    validation = quick_validate(content)
    narrative = Narrative(
        user_id=user_id,
        business_name=inputs["business_name"],
        industry=inputs["industry"],
        inputs=inputs,
        roi_data=roi,
        content=content,
        validation=validation,
        status=_status_for(validation),
        model=result.model,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
        estimated_cost=result.estimated_cost,
        regenerated_sections=[],
        assets=[],
    )
    db.add(narrative)
    await db.flush()

    if validation["is_valid"]:
        await cache.set(CACHE_DATA_TYPE, params, {"content": content, "validation": validation})

    logger.info(
        "Generated narrative %s (score %d, %d+%d tokens)",
        narrative.id,
        validation["score"],
        result.input_tokens,
        result.output_tokens,
    )
    return narrative, False


async def regenerate_narrative(
    db: AsyncSession,
    narrative: Narrative,
    llm: BaseChatModel,
    sections: list[str] | None = None,
    feedback: str | None = None,
) -> Narrative:
    """Regenerate ``sections`` (all when omitted) and bump the version.

    Raises:
        AppError 400: an unknown section name was requested.
        AppError 503: the model failed.
    """
    sections = list(sections or NARRATIVE_SECTIONS)
    unknown = [section for section in sections if section not in NARRATIVE_SECTIONS]
    if unknown:
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid section",
            message=f"Unknown narrative section(s): {', '.join(unknown)}",
            valid_sections=list(NARRATIVE_SECTIONS),
        )

    roi = narrative.roi_data or {}
    prompt = build_regeneration_prompt(
        prepare_business_data(narrative.inputs or {}, roi), narrative.content or {}, sections, feedback
    )
    try:
        result = await generate_json(llm, NARRATIVE_SYSTEM_PROMPT, prompt)
    except AIServiceError as e:
        logger.warning("Narrative regeneration failed for %s: %s", narrative.id, e)
        raise _ai_unavailable() from e

    content = dict(narrative.content or {})
    regenerated = [section for section in sections if result.data.get(section)]
    for section in regenerated:
        content[section] = result.data[section]
    content = normalize_narrative(content)
    validation = quick_validate(content)

    narrative.content = content
    narrative.validation = validation
    narrative.status = _status_for(validation)
    narrative.version = (narrative.version or 1) + 1
    narrative.regenerated_sections = sorted(set(narrative.regenerated_sections or []) | set(regenerated))
    narrative.input_tokens = (narrative.input_tokens or 0) + result.input_tokens
    narrative.output_tokens = (narrative.output_tokens or 0) + result.output_tokens
    narrative.estimated_cost = round((narrative.estimated_cost or 0.0) + result.estimated_cost, 6)
    await db.flush()
    logger.info("Regenerated %s of narrative %s (v%d)", regenerated, narrative.id, narrative.version)
    return narrative


async def get_owned_narrative(db: AsyncSession, narrative_id: uuid.UUID, user_id: uuid.UUID) -> Narrative:
    """Load a narrative, raising 404 if missing and 403 if owned by someone else."""
    narrative = await db.get(Narrative, narrative_id)
    if narrative is None:
        raise AppError(status.HTTP_404_NOT_FOUND, "Narrative not found")
    if narrative.user_id != user_id:
        raise AppError(status.HTTP_403_FORBIDDEN, "Access denied")
    return narrative


async def list_narratives(
    db: AsyncSession, user_id: uuid.UUID, limit: int = 20, offset: int = 0
) -> tuple[list[Narrative], int]:
    total = await db.scalar(select(func.count()).select_from(Narrative).where(Narrative.user_id == user_id))
    result = await db.execute(
        select(Narrative)
        .where(Narrative.user_id == user_id)
        .order_by(Narrative.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0


async def create_asset(db: AsyncSession, narrative: Narrative, formatter_type: str) -> FormattedAsset:
    """Run one formatter over the narrative and persist the asset."""
    output = format_narrative(formatter_type, narrative.content or {}, narrative.business_name)
    asset = FormattedAsset(
        narrative_id=narrative.id,
        user_id=narrative.user_id,
        formatter_type=output.formatter_type,
        content=output.content,
        html=output.html,
        word_count=output.word_count,
    )
    db.add(asset)
    await db.flush()
    return asset
