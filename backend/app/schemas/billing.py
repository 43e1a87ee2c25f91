"""Pydantic v2 request/response schemas for billing endpoints."""

from datetime import datetime

from pydantic import BaseModel

from app.billing.plans import PlanLimits
from app.services.usage_service import UsageSnapshot

# --- Request schemas ---


class CheckoutRequest(BaseModel):
    """Request to create a Stripe Checkout session."""

    plan: str  # "growth" or "scale"
    success_url: str | None = None
    cancel_url: str | None = None


class PortalRequest(BaseModel):
    """Request to create a Stripe Customer Portal session."""

    return_url: str | None = None


# --- Response schemas ---


class PlanResponse(BaseModel):
    """Plan details for display. Limits of -1 mean unlimited."""

    name: str
    display_name: str
    price_monthly_cents: int | None  # None = custom pricing
    pitches_per_month: int
    bulk_upload_rows: int
    market_reports_per_month: int
    narratives_per_month: int
    ai_regenerations: int
    ppt_export: bool
    white_label: bool
    formatters: list[str]
    batch_format: bool | int
    features: list[str]

    @classmethod
    def from_plan(cls, plan: PlanLimits) -> "PlanResponse":
        return cls(
            name=plan.name,
            display_name=plan.display_name,
            price_monthly_cents=plan.price_monthly_cents,
            pitches_per_month=plan.pitches_per_month,
            bulk_upload_rows=plan.bulk_upload_rows,
            market_reports_per_month=plan.market_reports_per_month,
            narratives_per_month=plan.narratives_per_month,
            ai_regenerations=plan.ai_regenerations,
            ppt_export=plan.ppt_export,
            white_label=plan.white_label,
            formatters=list(plan.formatters),
            batch_format=plan.batch_format,
            features=list(plan.features),
        )


class UsageLine(BaseModel):
    used: int
    limit: int


class UsageResponse(BaseModel):
    """Current period usage against the plan's monthly quotas."""

    period: str
    plan: str
    pitches: UsageLine
    narratives: UsageLine
    ai_regenerations: UsageLine
    market_reports: UsageLine
    bulk_uploads: int

    @classmethod
    def build(cls, plan: PlanLimits, usage: UsageSnapshot) -> "UsageResponse":
        return cls(
            period=usage.period,
            plan=plan.name,
            pitches=UsageLine(used=usage.pitches_generated, limit=plan.pitches_per_month),
            narratives=UsageLine(used=usage.narratives_generated, limit=plan.narratives_per_month),
            ai_regenerations=UsageLine(used=usage.ai_regenerations, limit=plan.ai_regenerations),
            market_reports=UsageLine(
                used=usage.market_reports_this_month, limit=plan.market_reports_per_month
            ),
            bulk_uploads=usage.bulk_uploads_this_month,
        )


class SubscriptionResponse(BaseModel):
    """Plan, Stripe status and usage for the authenticated user."""

    plan: PlanResponse
    status: str | None
    stripe_subscription_id: str | None
    current_period_start: datetime | None
    current_period_end: datetime | None
    usage: UsageResponse


class CheckoutResponse(BaseModel):
    """Stripe Checkout session URL returned to frontend."""

    checkout_url: str
    session_id: str


class PortalResponse(BaseModel):
    """Stripe Customer Portal URL returned to frontend."""

    portal_url: str
