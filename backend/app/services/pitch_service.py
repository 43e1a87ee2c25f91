"""Pitch service: render and persist pitches for single and bulk requests."""

import logging
import uuid
from typing import Any

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AppError
from app.models.pitch import Pitch
from app.pitch.html_builder import PitchInputs, PitchOptions, build_pitch_html
from app.pitch.roi import calculate_roi

logger = logging.getLogger(__name__)

SOURCE_SINGLE = "single"
SOURCE_BULK = "bulk"

_INPUT_FIELDS = (
    "business_name",
    "industry",
    "contact_name",
    "address",
    "website_url",
    "sub_industry",
    "google_rating",
    "num_reviews",
)


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def build_inputs(data: dict[str, Any]) -> PitchInputs:
    """Map request or CSV-row data onto renderer inputs, applying defaults."""
    kwargs = {field: _clean(data.get(field)) for field in _INPUT_FIELDS}
    if not kwargs["business_name"]:
        raise ValueError("business_name is required")
    if not kwargs["industry"]:
        raise ValueError("industry is required")
    if kwargs["contact_name"] is None:
        kwargs.pop("contact_name")

    inputs = PitchInputs(**kwargs)
    if _clean(data.get("custom_message")):
        inputs.stated_problem = data["custom_message"].strip()
    if data.get("monthly_visits"):
        inputs.monthly_visits = int(data["monthly_visits"])
    if data.get("avg_transaction"):
        inputs.avg_transaction = float(data["avg_transaction"])
    if data.get("repeat_rate"):
        inputs.repeat_rate = float(data["repeat_rate"])
    return inputs


async def generate_pitch_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    data: dict[str, Any],
    *,
    source: str = SOURCE_SINGLE,
    bulk_job_id: uuid.UUID | None = None,
    options: PitchOptions | None = None,
) -> Pitch:
    """Render a pitch and add it to the session.

    Usage is not counted here. Single requests count one pitch per call;
    bulk jobs count their successes once at the end.

    Raises:
        ValueError: required inputs are missing or the level is unsupported.
    """
    inputs = build_inputs(data)
    level = int(data.get("pitch_level") or 2)
    roi = calculate_roi(inputs.monthly_visits, inputs.avg_transaction, inputs.repeat_rate)
    options = options or PitchOptions()
    html = build_pitch_html(inputs, level, roi, options)

    pitch = Pitch(
        user_id=user_id,
        business_name=inputs.business_name,
        contact_name=inputs.contact_name,
        email=_clean(data.get("email")),
        phone=_clean(data.get("phone")),
        address=inputs.address,
        website_url=inputs.website_url,
        industry=inputs.industry,
        sub_industry=inputs.sub_industry,
        google_rating=inputs.google_rating,
        num_reviews=inputs.num_reviews,
        custom_message=_clean(data.get("custom_message")),
        pitch_level=level,
        html=html,
        roi_data=roi,
        options={"hide_branding": options.hide_branding},
        source=source,
        bulk_job_id=bulk_job_id,
        share_id=uuid.uuid4().hex,
    )
    db.add(pitch)
    await db.flush()
    logger.info("Generated level %d pitch %s for user %s (%s)", level, pitch.id, user_id, source)
    return pitch


async def get_owned_pitch(db: AsyncSession, pitch_id: uuid.UUID, user_id: uuid.UUID) -> Pitch:
    """Load a pitch, raising 404 if missing and 403 if owned by someone else."""
    pitch = await db.get(Pitch, pitch_id)
    if pitch is None:
        raise AppError(status.HTTP_404_NOT_FOUND, "Pitch not found")
    if pitch.user_id != user_id:
        raise AppError(status.HTTP_403_FORBIDDEN, "Access denied")
    return pitch


async def list_pitches(
    db: AsyncSession, user_id: uuid.UUID, limit: int = 20, offset: int = 0
) -> tuple[list[Pitch], int]:
    total = await db.scalar(select(func.count()).select_from(Pitch).where(Pitch.user_id == user_id))
    result = await db.execute(
        select(Pitch)
        .where(Pitch.user_id == user_id)
        .order_by(Pitch.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0
