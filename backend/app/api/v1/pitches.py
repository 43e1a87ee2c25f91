"""Pitches API router: generate, list, render and export pitches."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import GateContext, check_usage_limit, get_current_user, get_db, require_feature
from app.billing.plans import Feature, UsageType, has_feature
from app.errors import AppError
from app.models.user import User
from app.pitch.html_builder import PitchOptions
from app.pitch.slides import build_pitch_deck
from app.schemas.common import ApiResponse, Page, ok
from app.schemas.pitch import PitchCreate, PitchResponse, PitchSummary
from app.services.bulk_jobs import safe_filename
from app.services.pitch_service import generate_pitch_for_user, get_owned_pitch, list_pitches
from app.services.usage_service import increment_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/pitches", tags=["pitches"])

PPTX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"


def _options_for(body: PitchCreate) -> PitchOptions:
    options = PitchOptions(hide_branding=body.hide_branding, logo_url=body.logo_url, booking_url=body.booking_url)
    if body.primary_color:
        options.primary_color = body.primary_color
    if body.accent_color:
        options.accent_color = body.accent_color
    return options


@router.post("", response_model=ApiResponse[PitchResponse], status_code=status.HTTP_201_CREATED)
async def create_pitch(
    body: PitchCreate,
    db: AsyncSession = Depends(get_db),
    gate: GateContext = Depends(check_usage_limit(UsageType.PITCHES)),
) -> ApiResponse[PitchResponse]:
    """Generate a pitch for one prospect. Counts one pitch against the monthly quota."""
    if body.hide_branding and not has_feature(gate.plan_name, Feature.WHITE_LABEL):
        raise AppError(
            status.HTTP_403_FORBIDDEN,
            "Feature not available",
            message="White-label pitches are available on the Growth plan and above.",
            current_plan=gate.plan_name,
            required_feature=Feature.WHITE_LABEL.value,
        )

    data = body.model_dump(exclude={"hide_branding", "primary_color", "accent_color", "logo_url", "booking_url"})
    try:
        pitch = await generate_pitch_for_user(db, gate.user.id, data, options=_options_for(body))
    except ValueError as e:
        raise AppError(status.HTTP_400_BAD_REQUEST, "Invalid pitch data", message=str(e)) from e

    await increment_usage(db, gate.user.id, pitches_generated=1)
    return ok(PitchResponse.model_validate(pitch))


@router.get("", response_model=ApiResponse[Page[PitchSummary]])
async def get_pitches(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[Page[PitchSummary]]:
    """List the caller's pitches, newest first."""
    items, total = await list_pitches(db, current_user.id, limit, offset)
    return ok(
        Page(
            items=[PitchSummary.model_validate(p) for p in items],
            total=total,
            limit=limit,
            offset=offset,
        )
    )


@router.get("/{pitch_id}", response_model=ApiResponse[PitchResponse])
async def get_pitch(
    pitch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[PitchResponse]:
    pitch = await get_owned_pitch(db, pitch_id, current_user.id)
    return ok(PitchResponse.model_validate(pitch))


@router.get("/{pitch_id}/html", response_class=HTMLResponse)
async def get_pitch_html(
    pitch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> HTMLResponse:
    pitch = await get_owned_pitch(db, pitch_id, current_user.id)
    return HTMLResponse(content=pitch.html)


@router.get("/{pitch_id}/pptx")
async def export_pitch_pptx(
    pitch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    gate: GateContext = Depends(require_feature(Feature.PPT_EXPORT)),
) -> Response:
    """Download the pitch as a PowerPoint deck."""
    pitch = await get_owned_pitch(db, pitch_id, gate.user.id)
    filename = f"{safe_filename(pitch.business_name)}_pitch.pptx"
    return Response(
        content=build_pitch_deck(pitch),
        media_type=PPTX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{pitch_id}", response_model=ApiResponse[None])
async def delete_pitch(
    pitch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[None]:
    pitch = await get_owned_pitch(db, pitch_id, current_user.id)
    await db.delete(pitch)
    await db.flush()
    logger.info("Deleted pitch %s", pitch_id)
    return ok(message="Pitch deleted")
