"""Admin API router: platform stats, user management, usage and cache upkeep."""

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_db
from app.models.user import User
from app.schemas.admin import AdminUserResponse, AdminUserUpdate, BootstrapRequest
from app.schemas.common import ApiResponse, Page, ok
from app.services import admin_service
from app.services.content_cache import ContentCache
from app.services.usage_service import current_period

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.get("/stats", response_model=ApiResponse[dict[str, Any]])
async def get_stats(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
) -> ApiResponse[dict[str, Any]]:
    """Platform-wide totals and recurring revenue."""
    return ok(await admin_service.get_stats(db))


@router.get("/users", response_model=ApiResponse[Page[AdminUserResponse]])
async def get_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    plan: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
) -> ApiResponse[Page[AdminUserResponse]]:
    items, total = await admin_service.list_users(db, limit, offset, plan)
    return ok(
        Page(
            items=[AdminUserResponse.model_validate(u) for u in items],
            total=total,
            limit=limit,
            offset=offset,
        )
    )


@router.patch("/users/{user_id}", response_model=ApiResponse[AdminUserResponse])
async def patch_user(
    user_id: uuid.UUID,
    body: AdminUserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
) -> ApiResponse[AdminUserResponse]:
    user = await admin_service.update_user(db, user_id, plan=body.plan, role=body.role, is_active=body.is_active)
    return ok(AdminUserResponse.model_validate(user), message="User updated")


@router.get("/usage", response_model=ApiResponse[dict[str, Any]])
async def get_usage(
    period: str | None = Query(None, pattern=r"^\d{4}-\d{2}$"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
) -> ApiResponse[dict[str, Any]]:
    """Usage totals for ``period`` (YYYY-MM, default current month)."""
    return ok(await admin_service.usage_summary(db, period or current_period()))


@router.post("/bootstrap", response_model=ApiResponse[AdminUserResponse])
async def bootstrap(
    body: BootstrapRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AdminUserResponse]:
    """Promote an existing account to admin using the bootstrap key. No auth required."""
    user = await admin_service.bootstrap_admin(db, body.secret_key, body.email, force=body.force)
    return ok(AdminUserResponse.model_validate(user), message=f"{user.email} is now an admin")


@router.get("/cache/stats", response_model=ApiResponse[dict[str, Any]])
async def cache_stats(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
) -> ApiResponse[dict[str, Any]]:
    return ok(await ContentCache(db).stats())


@router.post("/cache/cleanup", response_model=ApiResponse[dict[str, Any]])
async def cache_cleanup(
    batch_size: int = Query(50, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
) -> ApiResponse[dict[str, Any]]:
    """Delete expired cache entries, at most ``batch_size`` per data type."""
    deleted = await ContentCache(db).cleanup_expired(batch_size=batch_size)
    return ok({"deleted": deleted, "total_deleted": sum(deleted.values())})
