"""Admin service: platform statistics, user management and admin bootstrap."""

import logging
import secrets
import uuid
from datetime import datetime
from typing import Any

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.plans import PLAN_ORDER, PLANS
from app.config import settings
from app.database import utcnow
from app.errors import AppError
from app.models.bulk_job import BulkJob
from app.models.market_report import MarketReport
from app.models.pitch import Pitch
from app.models.subscription import Subscription
from app.models.usage import USAGE_COUNTERS, UsageRecord
from app.models.user import User
from app.services.subscription_service import STATUS_ACTIVE

logger = logging.getLogger(__name__)

ROLES = ("user", "admin")
TOP_USERS_LIMIT = 10


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def monthly_recurring_revenue(active_by_plan: dict[str, int]) -> int:
    """MRR in cents. Custom-priced plans contribute nothing."""
    return sum(count * (PLANS[plan].price_monthly_cents or 0) for plan, count in active_by_plan.items() if plan in PLANS)


async def get_stats(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    month_start = _month_start(now)

    rows = await db.execute(select(User.plan, func.count()).group_by(User.plan))
    users_by_plan = {plan: 0 for plan in PLAN_ORDER}
    for plan, count in rows.all():
        users_by_plan[plan if plan in users_by_plan else "starter"] += count
    new_users = await db.scalar(select(func.count()).select_from(User).where(User.created_at >= month_start))

    total_pitches = await db.scalar(select(func.count()).select_from(Pitch))
    pitches_this_month = await db.scalar(select(func.count()).select_from(Pitch).where(Pitch.created_at >= month_start))
    level_rows = await db.execute(select(Pitch.pitch_level, func.count()).group_by(Pitch.pitch_level))

    sub_rows = await db.execute(
        select(Subscription.plan, func.count()).where(Subscription.status == STATUS_ACTIVE).group_by(Subscription.plan)
    )
    active_by_plan = dict(sub_rows.all())

    job_rows = await db.execute(select(BulkJob.status, func.count()).group_by(BulkJob.status))
    market_reports = await db.scalar(select(func.count()).select_from(MarketReport))

    mrr = monthly_recurring_revenue(active_by_plan)
    return {
        "users": {
            "total": sum(users_by_plan.values()),
            "by_plan": users_by_plan,
            "new_this_month": new_users or 0,
        },
        "pitches": {
            "total": total_pitches or 0,
            "this_month": pitches_this_month or 0,
            "by_level": {f"level{level}": count for level, count in level_rows.all()},
        },
        "subscriptions": {"active": sum(active_by_plan.values()), "by_plan": active_by_plan},
        "bulk_jobs": dict(job_rows.all()),
        "market_reports": market_reports or 0,
        "revenue": {"mrr_cents": mrr, "arr_cents": mrr * 12},
        "generated_at": now.isoformat(),
    }


async def list_users(
    db: AsyncSession, limit: int = 50, offset: int = 0, plan: str | None = None
) -> tuple[list[User], int]:
    query = select(User)
    count_query = select(func.count()).select_from(User)
    if plan:
        query = query.where(User.plan == plan)
        count_query = count_query.where(User.plan == plan)

    total = await db.scalar(count_query)
    result = await db.execute(query.order_by(User.created_at.desc()).limit(limit).offset(offset))
    return list(result.scalars().all()), total or 0


async def update_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
) -> User:
    """Apply an admin edit. Raises AppError 404 / 400."""
    user = await db.get(User, user_id)
    if user is None:
        raise AppError(status.HTTP_404_NOT_FOUND, "User not found")
    if plan is not None:
        if plan not in PLANS:
            raise AppError(status.HTTP_400_BAD_REQUEST, "Invalid plan", valid_plans=list(PLAN_ORDER))
        user.plan = plan
    if role is not None:
        if role not in ROLES:
            raise AppError(status.HTTP_400_BAD_REQUEST, "Invalid role", valid_roles=list(ROLES))
        user.role = role
    if is_active is not None:
        user.is_active = is_active
    await db.flush()
    logger.info("Admin updated user %s (plan=%s role=%s active=%s)", user.id, user.plan, user.role, user.is_active)
    return user


async def usage_summary(db: AsyncSession, period: str, top: int = TOP_USERS_LIMIT) -> dict[str, Any]:
    """Counter totals for ``period`` plus the heaviest pitch generators."""
    totals_row = (
        await db.execute(
            select(*(func.coalesce(func.sum(getattr(UsageRecord, c)), 0) for c in USAGE_COUNTERS)).where(
                UsageRecord.period == period
            )
        )
    ).one()
    totals = dict(zip(USAGE_COUNTERS, (int(v) for v in totals_row)))

    top_rows = await db.execute(
        select(User.id, User.email, User.plan, UsageRecord.pitches_generated)
        .join(UsageRecord, UsageRecord.user_id == User.id)
        .where(UsageRecord.period == period)
        .order_by(UsageRecord.pitches_generated.desc())
        .limit(top)
    )
    return {
        "period": period,
        "totals": totals,
        "top_users": [
            {"user_id": str(user_id), "email": email, "plan": plan, "pitches_generated": pitches}
            for user_id, email, plan, pitches in top_rows.all()
        ],
    }


async def bootstrap_admin(db: AsyncSession, secret_key: str | None, email: str | None, force: bool = False) -> User:
    """Promote ``email`` to admin with the bootstrap key.

    Raises:
        AppError 403: wrong key.
        AppError 400: missing email, or an admin exists and ``force`` is off.
        AppError 404: no account for ``email``.
    """
    if not secret_key or not secrets.compare_digest(secret_key, settings.admin_bootstrap_key):
        raise AppError(status.HTTP_403_FORBIDDEN, "Invalid bootstrap key")
    if not email or not email.strip():
        raise AppError(status.HTTP_400_BAD_REQUEST, "Email is required")

    if not force:
        existing = await db.scalar(select(func.count()).select_from(User).where(User.role == "admin"))
        if existing:
            raise AppError(
                status.HTTP_400_BAD_REQUEST,
                "Admin already exists",
                message="Admin already exists. Use force: true to add another admin.",
            )

    normalized = email.strip().lower()
    user = await db.scalar(select(User).where(func.lower(User.email) == normalized))
    if user is None:
        raise AppError(status.HTTP_404_NOT_FOUND, "User not found")

    user.role = "admin"
    await db.flush()
    logger.warning("Bootstrapped admin: %s", normalized)
    return user
