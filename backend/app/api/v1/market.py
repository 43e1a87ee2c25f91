"""Market intelligence API router: competitor and demographic reports."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    GateContext,
    check_usage_limit,
    get_current_user,
    get_db,
    get_ticker_directory,
    require_feature,
)
from app.billing.plans import Feature, UsageType
from app.models.market_report import MarketReport
from app.models.user import User
from app.schemas.common import ApiResponse, Page, ok
from app.schemas.market import MarketReportCreate, MarketReportResponse
from app.services.census_client import CensusClient
from app.services.content_cache import ContentCache
from app.services.market_service import (
    ReportRequest,
    build_report,
    get_owned_report,
    list_reports,
    validate_report_request,
)
from app.services.places_client import PlacesClient
from app.services.sec_client import SecClient, TickerDirectory
from app.services.usage_service import increment_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/market", tags=["market"])


@router.post(
    "/reports",
    response_model=ApiResponse[MarketReportResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_feature(Feature.MARKET_REPORTS))],
)
async def create_report(
    body: MarketReportCreate,
    db: AsyncSession = Depends(get_db),
    gate: GateContext = Depends(check_usage_limit(UsageType.MARKET_REPORTS)),
    directory: TickerDirectory = Depends(get_ticker_directory),
) -> ApiResponse[MarketReportResponse]:
    """Build a market report for an industry and location."""
    req = ReportRequest(
        industry=(body.industry or "").strip(),
        city=body.city,
        state=body.state,
        zip_code=body.zip_code,
        company_size=body.company_size,
        radius=body.radius,
    )
    validate_report_request(req)

    cache = ContentCache(db)
    report = await build_report(
        req,
        gate.plan_name,
        places=PlacesClient(cache),
        census=CensusClient(cache),
        sec=SecClient(cache, directory),
    )

    market_report = MarketReport(
        user_id=gate.user.id,
        industry=req.industry,
        location=req.location,
        inputs=body.model_dump(exclude_none=True),
        report=report,
    )
    db.add(market_report)
    await db.flush()
    await db.refresh(market_report)

    await increment_usage(db, gate.user.id, market_reports_this_month=1)
    logger.info("Market report %s created for %s in %s", market_report.id, req.industry, req.location)
    return ok(MarketReportResponse.model_validate(market_report))


@router.get("/reports", response_model=ApiResponse[Page[MarketReportResponse]])
async def get_reports(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[Page[MarketReportResponse]]:
    items, total = await list_reports(db, current_user.id, limit, offset)
    return ok(
        Page(
            items=[MarketReportResponse.model_validate(r) for r in items],
            total=total,
            limit=limit,
            offset=offset,
        )
    )


@router.get("/reports/{report_id}", response_model=ApiResponse[MarketReportResponse])
async def get_report(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[MarketReportResponse]:
    report = await get_owned_report(db, report_id, current_user.id)
    return ok(MarketReportResponse.model_validate(report))
