"""Narratives API router: AI narratives, regeneration and formatted assets."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from langchain_core.language_models import BaseChatModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import GateContext, check_usage_limit, get_current_user, get_db, get_gate_context
from app.billing.dependencies import require_batch_format, require_formatter
from app.billing.plans import UsageType, can_use_formatter
from app.errors import AppError
from app.models.user import User
from app.pitch.formatters import FORMATTER_INFO, FORMATTERS
from app.schemas.common import ApiResponse, Page, ok
from app.schemas.narrative import (
    AssetResponse,
    BatchFormatRequest,
    FormatRequest,
    FormatterInfo,
    NarrativeCreate,
    NarrativeCreated,
    NarrativeResponse,
    RegenerateRequest,
)
from app.services.ai_client import get_llm
from app.services.narrative_service import (
    create_asset,
    generate_narrative,
    get_owned_narrative,
    list_narratives,
    regenerate_narrative,
)
from app.services.usage_service import increment_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/narratives", tags=["narratives"])
formatters_router = APIRouter(prefix="/api/v1/formatters", tags=["narratives"])


def _check_formatter_type(formatter_type: str) -> None:
    if formatter_type not in FORMATTERS:
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid formatter type",
            message=f"Unknown formatter: {formatter_type}",
            valid_formatters=list(FORMATTERS),
        )


@router.post("", response_model=ApiResponse[NarrativeCreated], status_code=status.HTTP_201_CREATED)
async def create_narrative(
    body: NarrativeCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    gate: GateContext = Depends(check_usage_limit(UsageType.NARRATIVES)),
    llm: BaseChatModel = Depends(get_llm),
) -> ApiResponse[NarrativeCreated]:
    """Generate a sales narrative.

    A cached narrative for the same business inputs is returned with 200 and
    does not count against the monthly quota.
    """
    if not (body.business_name or "").strip() or not (body.industry or "").strip():
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "Missing required fields",
            message="business_name and industry are required.",
        )

    inputs = body.model_dump(exclude_none=True)
    narrative, from_cache = await generate_narrative(db, gate.user.id, inputs, llm)
    if from_cache:
        response.status_code = status.HTTP_200_OK
    else:
        await increment_usage(db, gate.user.id, narratives_generated=1)

    return ok(NarrativeCreated(narrative=NarrativeResponse.model_validate(narrative), from_cache=from_cache))


@router.get("", response_model=ApiResponse[Page[NarrativeResponse]])
async def get_narratives(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[Page[NarrativeResponse]]:
    items, total = await list_narratives(db, current_user.id, limit, offset)
    return ok(
        Page(
            items=[NarrativeResponse.model_validate(n) for n in items],
            total=total,
            limit=limit,
            offset=offset,
        )
    )


@router.get("/{narrative_id}", response_model=ApiResponse[NarrativeResponse])
async def get_narrative(
    narrative_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[NarrativeResponse]:
    narrative = await get_owned_narrative(db, narrative_id, current_user.id)
    return ok(NarrativeResponse.model_validate(narrative))


@router.post("/{narrative_id}/regenerate", response_model=ApiResponse[NarrativeResponse])
async def regenerate(
    narrative_id: uuid.UUID,
    body: RegenerateRequest,
    db: AsyncSession = Depends(get_db),
    gate: GateContext = Depends(check_usage_limit(UsageType.AI_REGENERATIONS)),
    llm: BaseChatModel = Depends(get_llm),
) -> ApiResponse[NarrativeResponse]:
    """Regenerate one section, several sections, or the whole narrative."""
    narrative = await get_owned_narrative(db, narrative_id, gate.user.id)
    narrative = await regenerate_narrative(db, narrative, llm, body.requested_sections(), body.feedback)
    await increment_usage(db, gate.user.id, ai_regenerations=1)
    return ok(NarrativeResponse.model_validate(narrative))


@router.delete("/{narrative_id}", response_model=ApiResponse[None])
async def delete_narrative(
    narrative_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[None]:
    """Delete a narrative and its formatted assets."""
    narrative = await get_owned_narrative(db, narrative_id, current_user.id)
    await db.delete(narrative)
    await db.flush()
    return ok(message="Narrative deleted")


@router.get("/{narrative_id}/assets", response_model=ApiResponse[list[AssetResponse]])
async def get_assets(
    narrative_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[list[AssetResponse]]:
    narrative = await get_owned_narrative(db, narrative_id, current_user.id)
    return ok([AssetResponse.model_validate(a) for a in narrative.assets])


@router.post(
    "/{narrative_id}/format",
    response_model=ApiResponse[AssetResponse],
    status_code=status.HTTP_201_CREATED,
)
async def format_narrative(
    narrative_id: uuid.UUID,
    body: FormatRequest,
    db: AsyncSession = Depends(get_db),
    gate: GateContext = Depends(get_gate_context),
) -> ApiResponse[AssetResponse]:
    """Render the narrative with one formatter and store the asset."""
    _check_formatter_type(body.formatter_type)
    require_formatter(gate, body.formatter_type)
    narrative = await get_owned_narrative(db, narrative_id, gate.user.id)
    asset = await create_asset(db, narrative, body.formatter_type)
    return ok(AssetResponse.model_validate(asset))


@router.post(
    "/{narrative_id}/format/batch",
    response_model=ApiResponse[list[AssetResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def format_narrative_batch(
    narrative_id: uuid.UUID,
    body: BatchFormatRequest,
    db: AsyncSession = Depends(get_db),
    gate: GateContext = Depends(get_gate_context),
) -> ApiResponse[list[AssetResponse]]:
    """Render several formatters in one request (Growth and above)."""
    formatter_types = list(dict.fromkeys(body.formatter_types))
    require_batch_format(gate, len(formatter_types))
    for formatter_type in formatter_types:
        _check_formatter_type(formatter_type)
        require_formatter(gate, formatter_type)

    narrative = await get_owned_narrative(db, narrative_id, gate.user.id)
    assets = [await create_asset(db, narrative, formatter_type) for formatter_type in formatter_types]
    logger.info("Batch formatted narrative %s into %d assets", narrative.id, len(assets))
    return ok([AssetResponse.model_validate(a) for a in assets])


@formatters_router.get("", response_model=ApiResponse[list[FormatterInfo]])
async def get_formatters(gate: GateContext = Depends(get_gate_context)) -> ApiResponse[list[FormatterInfo]]:
    """Every formatter and whether the caller's plan can use it."""
    return ok(
        [
            FormatterInfo(type=formatter_type, available=can_use_formatter(gate.plan_name, formatter_type), **info)
            for formatter_type, info in FORMATTER_INFO.items()
        ]
    )
