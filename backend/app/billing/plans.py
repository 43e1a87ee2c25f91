"""Plan definitions: pricing tiers, usage limits and feature flags.

A limit of ``UNLIMITED`` (-1) means the dimension is not capped for the tier.
Every comparison against a limit goes through :func:`is_within_limits`, which
short-circuits the sentinel before comparing numbers.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from app.config import settings

UNLIMITED = -1

# Cheapest first. Upgrade suggestions scan in this order.
PLAN_ORDER: tuple[str, ...] = ("starter", "growth", "scale", "enterprise")
DEFAULT_PLAN = "starter"
TOP_PLAN = "enterprise"


class UsageType(str, Enum):
    """Metered dimensions checked by the plan gate."""

    PITCHES = "pitches"
    BULK_UPLOAD_ROWS = "bulk_upload_rows"
    MARKET_REPORTS = "market_reports"
    NARRATIVES = "narratives"
    AI_REGENERATIONS = "ai_regenerations"


class Feature(str, Enum):
    """Boolean capabilities that depend on the plan."""

    PPT_EXPORT = "ppt_export"
    WHITE_LABEL = "white_label"
    BULK_UPLOAD = "bulk_upload"
    MARKET_REPORTS = "market_reports"
    BATCH_FORMAT = "batch_format"


ALL_FORMATTERS: tuple[str, ...] = (
    "sales_pitch",
    "one_pager",
    "email_sequence",
    "linkedin",
    "executive_summary",
    "deck",
    "proposal",
)

ALL_MARKET_FEATURES: frozenset[str] = frozenset(
    {
        "basic_demographics",
        "detailed_demographics",
        "age_distribution",
        "education_profile",
        "commute_patterns",
        "opportunity_score",
        "establishment_trend",
        "recommendations",
        "visualizations",
        "pdf_export",
        "pitch_integration",
    }
)


@dataclass(frozen=True)
class PlanLimits:
    """Usage limits and feature flags for a subscription plan."""

    name: str
    display_name: str
    price_monthly_cents: int | None  # None = custom pricing
    stripe_price_id: str | None  # None for the free tier
    pitches_per_month: int
    bulk_upload_rows: int
    market_reports_per_month: int
    narratives_per_month: int
    ai_regenerations: int
    ppt_export: bool
    white_label: bool
    formatters: tuple[str, ...]
    batch_format: bool | int  # True = unlimited batch size, int = max formatters per batch
    market_features: frozenset[str]
    features: tuple[str, ...] = ()


PLANS: dict[str, PlanLimits] = {
    "starter": PlanLimits(
        name="starter",
        display_name="Starter",
        price_monthly_cents=0,
        stripe_price_id=None,
        pitches_per_month=10,
        bulk_upload_rows=5,
        market_reports_per_month=0,
        narratives_per_month=5,
        ai_regenerations=2,
        ppt_export=False,
        white_label=False,
        formatters=("sales_pitch", "one_pager"),
        batch_format=False,
        market_features=frozenset({"basic_demographics"}),
        features=(
            "10 pitches per month",
            "Bulk upload up to 5 rows",
            "Level 1-3 pitch documents",
            "Email support",
        ),
    ),
    "growth": PlanLimits(
        name="growth",
        display_name="Growth",
        price_monthly_cents=4900,
        stripe_price_id=settings.stripe_growth_price_id or None,
        pitches_per_month=100,
        bulk_upload_rows=50,
        market_reports_per_month=5,
        narratives_per_month=25,
        ai_regenerations=10,
        ppt_export=False,
        white_label=True,
        formatters=("sales_pitch", "one_pager", "email_sequence", "linkedin", "executive_summary"),
        batch_format=3,
        market_features=ALL_MARKET_FEATURES - {"pdf_export", "pitch_integration"},
        features=(
            "100 pitches per month",
            "Bulk upload up to 50 rows",
            "5 market intelligence reports",
            "White-label pitches",
            "Priority support",
        ),
    ),
    "scale": PlanLimits(
        name="scale",
        display_name="Scale",
        price_monthly_cents=14900,
        stripe_price_id=settings.stripe_scale_price_id or None,
        pitches_per_month=UNLIMITED,
        bulk_upload_rows=100,
        market_reports_per_month=20,
        narratives_per_month=UNLIMITED,
        ai_regenerations=UNLIMITED,
        ppt_export=True,
        white_label=True,
        formatters=ALL_FORMATTERS,
        batch_format=True,
        market_features=ALL_MARKET_FEATURES,
        features=(
            "Unlimited pitches",
            "Bulk upload up to 100 rows",
            "20 market intelligence reports",
            "PowerPoint export",
            "White-label pitches",
            "Dedicated support",
        ),
    ),
    "enterprise": PlanLimits(
        name="enterprise",
        display_name="Enterprise",
        price_monthly_cents=None,
        stripe_price_id=settings.stripe_enterprise_price_id or None,
        pitches_per_month=UNLIMITED,
        bulk_upload_rows=UNLIMITED,
        market_reports_per_month=UNLIMITED,
        narratives_per_month=UNLIMITED,
        ai_regenerations=UNLIMITED,
        ppt_export=True,
        white_label=True,
        formatters=ALL_FORMATTERS,
        batch_format=True,
        market_features=ALL_MARKET_FEATURES,
        features=(
            "Everything in Scale",
            "Unlimited bulk uploads",
            "Unlimited market reports",
            "Custom onboarding",
        ),
    ),
}

VALID_PLAN_NAMES: set[str] = set(PLANS.keys())

_LIMIT_FIELDS: dict[UsageType, str] = {
    UsageType.PITCHES: "pitches_per_month",
    UsageType.BULK_UPLOAD_ROWS: "bulk_upload_rows",
    UsageType.MARKET_REPORTS: "market_reports_per_month",
    UsageType.NARRATIVES: "narratives_per_month",
    UsageType.AI_REGENERATIONS: "ai_regenerations",
}

# Per-request quantities may equal the limit; monthly quotas must stay below it.
PER_REQUEST_USAGE_TYPES: frozenset[UsageType] = frozenset({UsageType.BULK_UPLOAD_ROWS})


def get_plan(plan_name: str | None) -> PlanLimits:
    """Get plan limits by name. Defaults to starter if unknown."""
    return PLANS.get(plan_name or DEFAULT_PLAN, PLANS[DEFAULT_PLAN])


def resolve_plan_name(raw: Any) -> str:
    """Normalize a stored plan value to a known tier name.

    Older user rows stored the plan as ``{"tier": "growth", ...}`` instead of a
    bare string. Both shapes, ``None`` and unknown names all resolve here, so
    nothing downstream has to care.
    """
    if isinstance(raw, Mapping):
        raw = raw.get("tier")
    if isinstance(raw, str):
        name = raw.strip().lower()
        if name in PLANS:
            return name
    return DEFAULT_PLAN


def get_plan_by_price_id(price_id: str | None) -> str | None:
    """Reverse lookup: Stripe price ID -> plan name. Returns None if not found."""
    if not price_id:
        return None
    for plan in PLANS.values():
        if plan.stripe_price_id and plan.stripe_price_id == price_id:
            return plan.name
    return None


def get_plan_hierarchy_level(plan_name: str | None) -> int:
    """Position of the plan in PLAN_ORDER (starter = 0)."""
    return PLAN_ORDER.index(resolve_plan_name(plan_name))


def _coerce_usage_type(usage_type: UsageType | str) -> UsageType | None:
    try:
        return UsageType(usage_type)
    except ValueError:
        return None


def get_limit(plan_name: str | None, usage_type: UsageType | str) -> int | None:
    """Numeric limit for a usage type, or None if the usage type is unknown."""
    resolved = _coerce_usage_type(usage_type)
    if resolved is None:
        return None
    return getattr(get_plan(plan_name), _LIMIT_FIELDS[resolved])


def has_feature(plan_name: str | None, feature: Feature | str) -> bool:
    """Whether the plan includes a boolean feature. Unknown features are False."""
    plan = get_plan(plan_name)
    try:
        feature = Feature(feature)
    except ValueError:
        return False

    if feature is Feature.PPT_EXPORT:
        return plan.ppt_export
    if feature is Feature.WHITE_LABEL:
        return plan.white_label
    if feature is Feature.BULK_UPLOAD:
        return plan.bulk_upload_rows != 0
    if feature is Feature.MARKET_REPORTS:
        return plan.market_reports_per_month != 0
    if feature is Feature.BATCH_FORMAT:
        return bool(plan.batch_format)
    return False


def is_within_limits(plan_name: str | None, usage_type: UsageType | str, current_usage: int) -> bool:
    """Whether ``current_usage`` is admissible for the plan.

    For monthly quotas ``current_usage`` is what has already been consumed, so
    the check is ``current < limit``. For per-request quantities (bulk rows)
    it is the requested amount and may equal the limit. Unknown usage types
    are never within limits.
    """
    resolved = _coerce_usage_type(usage_type)
    if resolved is None:
        return False

    limit = getattr(get_plan(plan_name), _LIMIT_FIELDS[resolved])
    if limit == UNLIMITED:
        return True
    if resolved in PER_REQUEST_USAGE_TYPES:
        return current_usage <= limit
    return current_usage < limit


def find_plan_with_limit(usage_type: UsageType | str, requested: int) -> str:
    """Cheapest plan whose limit for ``usage_type`` admits ``requested``.

    Falls back to the top tier when no plan qualifies.
    """
    resolved = _coerce_usage_type(usage_type)
    if resolved is None:
        return TOP_PLAN

    field = _LIMIT_FIELDS[resolved]
    for name in PLAN_ORDER:
        limit = getattr(PLANS[name], field)
        if limit == UNLIMITED or limit >= requested:
            return name
    return TOP_PLAN


def can_use_formatter(plan_name: str | None, formatter_type: str) -> bool:
    return formatter_type in get_plan(plan_name).formatters


def can_batch_format(plan_name: str | None, count: int) -> bool:
    """Whether the plan may run ``count`` formatters in one batch request."""
    batch = get_plan(plan_name).batch_format
    if batch is True:
        return True
    if not batch:
        return False
    return count <= batch


def has_market_feature(plan_name: str | None, market_feature: str) -> bool:
    return market_feature in get_plan(plan_name).market_features
