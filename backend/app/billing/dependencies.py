"""Plan gating dependencies: admit or reject requests based on plan and usage.

Every gate resolves the caller's plan and this month's usage into a
:class:`GateContext`, which the route receives for downstream use::

    @router.post("")
    async def create_pitch(gate: GateContext = Depends(check_usage_limit(UsageType.PITCHES))):
        ...

Anonymous callers are rejected by ``get_current_user`` before any plan logic.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.billing.plans import (
    PER_REQUEST_USAGE_TYPES,
    PLAN_ORDER,
    PLANS,
    Feature,
    PlanLimits,
    UsageType,
    can_batch_format,
    can_use_formatter,
    find_plan_with_limit,
    get_limit,
    get_plan,
    get_plan_hierarchy_level,
    has_feature,
    is_within_limits,
    resolve_plan_name,
)
from app.database import get_db
from app.errors import AppError
from app.models.user import User
from app.services.usage_service import UsageSnapshot, get_usage

logger = logging.getLogger(__name__)

USAGE_LABELS: dict[UsageType, str] = {
    UsageType.PITCHES: "pitches this month",
    UsageType.BULK_UPLOAD_ROWS: "rows per bulk upload",
    UsageType.MARKET_REPORTS: "market reports this month",
    UsageType.NARRATIVES: "narratives this month",
    UsageType.AI_REGENERATIONS: "AI regenerations this month",
}

FEATURE_MESSAGES: dict[Feature, str] = {
    Feature.PPT_EXPORT: "PowerPoint export is available on the Scale plan and above.",
    Feature.WHITE_LABEL: "White-label pitches are available on the Growth plan and above.",
    Feature.BULK_UPLOAD: "Bulk upload is not available on your plan.",
    Feature.MARKET_REPORTS: "Market intelligence reports are available on the Growth plan and above.",
    Feature.BATCH_FORMAT: "Batch formatting is available on the Growth plan and above.",
}


@dataclass
class GateContext:
    """Resolved plan, limits and usage for the authenticated caller."""

    user: User
    plan_name: str
    limits: PlanLimits
    usage: UsageSnapshot


def upgrade_plan_payload(plan_name: str) -> dict:
    plan = get_plan(plan_name)
    return {
        "name": plan.name,
        "display_name": plan.display_name,
        "price_monthly_cents": plan.price_monthly_cents,
    }


def _first_plan_with_feature(feature: Feature) -> str:
    for name in PLAN_ORDER:
        if has_feature(name, feature):
            return name
    return PLAN_ORDER[-1]


async def get_gate_context(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> GateContext:
    """Resolve the caller's plan and current-period usage."""
    plan_name = resolve_plan_name(user.plan)
    usage = await get_usage(db, user.id)
    return GateContext(user=user, plan_name=plan_name, limits=get_plan(plan_name), usage=usage)


def usage_limit_error(plan_name: str, usage_type: UsageType, current: int, requested: int) -> AppError:
    """429 rejection carrying the limit, current usage and an upgrade suggestion."""
    limit = get_limit(plan_name, usage_type)
    suggestion = find_plan_with_limit(usage_type, requested)
    return AppError(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Usage limit reached",
        message=(
            f"You've reached your limit of {limit} {USAGE_LABELS[usage_type]}. "
            f"Upgrade to the {PLANS[suggestion].display_name} plan for more."
        ),
        current_plan=plan_name,
        limit_type=usage_type.value,
        usage={"current": current, "limit": limit},
        upgrade_plan=upgrade_plan_payload(suggestion),
    )


def require_feature(feature: Feature | str):
    """Dependency factory: 403 unless the caller's plan includes ``feature``."""
    feature = Feature(feature)

    async def _require_feature(gate: GateContext = Depends(get_gate_context)) -> GateContext:
        if not has_feature(gate.plan_name, feature):
            logger.info("User %s on %s blocked from feature %s", gate.user.id, gate.plan_name, feature.value)
            raise AppError(
                status.HTTP_403_FORBIDDEN,
                "Feature not available",
                message=FEATURE_MESSAGES[feature],
                current_plan=gate.plan_name,
                required_feature=feature.value,
                upgrade_plan=upgrade_plan_payload(_first_plan_with_feature(feature)),
            )
        return gate

    return _require_feature


def check_usage_limit(usage_type: UsageType | str):
    """Dependency factory: 429 once this month's quota for ``usage_type`` is used up.

    Only monthly quotas can be gated this way. Per-request quantities depend on
    the request body and are checked by the handler with ``is_within_limits``.

    Raises:
        ValueError: At route definition time for unknown or per-request usage
            types, so a typo can never silently admit everything.
    """
    usage_type = UsageType(usage_type)
    if usage_type in PER_REQUEST_USAGE_TYPES:
        raise ValueError(f"{usage_type.value} is a per-request quantity, not a monthly quota")

    async def _check_usage_limit(gate: GateContext = Depends(get_gate_context)) -> GateContext:
        current = gate.usage.for_usage_type(usage_type)
        if not is_within_limits(gate.plan_name, usage_type, current):
            logger.info(
                "User %s on %s hit %s limit (%d used)",
                gate.user.id,
                gate.plan_name,
                usage_type.value,
                current,
            )
            raise usage_limit_error(gate.plan_name, usage_type, current, current + 1)
        return gate

    return _check_usage_limit


def require_plan(minimum_plan: str):
    """Dependency factory: 403 unless the caller is on ``minimum_plan`` or higher."""
    if minimum_plan not in PLANS:
        raise ValueError(f"Unknown plan: {minimum_plan}")
    required_level = get_plan_hierarchy_level(minimum_plan)

    async def _require_plan(gate: GateContext = Depends(get_gate_context)) -> GateContext:
        if get_plan_hierarchy_level(gate.plan_name) < required_level:
            raise AppError(
                status.HTTP_403_FORBIDDEN,
                "Plan upgrade required",
                message=f"This feature requires the {PLANS[minimum_plan].display_name} plan or higher.",
                current_plan=gate.plan_name,
                required_plan=minimum_plan,
                upgrade_plan=upgrade_plan_payload(minimum_plan),
            )
        return gate

    return _require_plan


def require_formatter(gate: GateContext, formatter_type: str) -> None:
    """403 unless the caller's plan includes ``formatter_type``."""
    if can_use_formatter(gate.plan_name, formatter_type):
        return
    suggestion = next((name for name in PLAN_ORDER if can_use_formatter(name, formatter_type)), PLAN_ORDER[-1])
    raise AppError(
        status.HTTP_403_FORBIDDEN,
        "Formatter not available",
        message=f"The {formatter_type} formatter is available on the {PLANS[suggestion].display_name} plan and above.",
        current_plan=gate.plan_name,
        formatter_type=formatter_type,
        available_formatters=list(gate.limits.formatters),
        upgrade_plan=upgrade_plan_payload(suggestion),
    )


def require_batch_format(gate: GateContext, count: int) -> None:
    """403 unless the caller may run ``count`` formatters in one request."""
    if can_batch_format(gate.plan_name, count):
        return
    suggestion = next((name for name in PLAN_ORDER if can_batch_format(name, count)), PLAN_ORDER[-1])
    raise AppError(
        status.HTTP_403_FORBIDDEN,
        "Batch formatting not available",
        message=FEATURE_MESSAGES[Feature.BATCH_FORMAT],
        current_plan=gate.plan_name,
        requested=count,
        upgrade_plan=upgrade_plan_payload(suggestion),
    )
