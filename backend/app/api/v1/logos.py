"""Logos API router: discover a prospect's logo from its website."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.common import ApiResponse, ok
from app.schemas.market import LogoResult
from app.services.content_cache import ContentCache
from app.services.logo_fetch import LogoFinder

router = APIRouter(prefix="/api/v1/logos", tags=["logos"])


@router.get("", response_model=ApiResponse[LogoResult])
async def get_logo(
    url: str = Query(..., min_length=1, max_length=2048),
    bypass_cache: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[LogoResult]:
    """Ranked logo candidates for ``url``; the best one is ``primary_logo``."""
    result = await LogoFinder(ContentCache(db)).fetch_logo(url, bypass_cache=bypass_cache)
    return ok(LogoResult.model_validate(result))
