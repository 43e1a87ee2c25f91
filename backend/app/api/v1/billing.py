"""Billing API endpoints: plans, usage, Stripe Checkout and Customer Portal."""

import logging

import stripe
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import GateContext, get_current_user, get_db, get_gate_context
from app.billing.plans import PLAN_ORDER, PLANS, get_plan
from app.billing.stripe_client import create_checkout_session, create_portal_session
from app.config import settings
from app.errors import AppError
from app.models.user import User
from app.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    PlanResponse,
    PortalRequest,
    PortalResponse,
    SubscriptionResponse,
    UsageResponse,
)
from app.schemas.common import ApiResponse, ok
from app.services.subscription_service import ensure_stripe_customer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


def _payment_provider_error(e: stripe.StripeError) -> AppError:
    logger.error("Stripe error: %s", e)
    return AppError(
        status.HTTP_502_BAD_GATEWAY,
        "Payment provider error",
        message="The payment provider could not complete the request. Please try again.",
    )


@router.get("/plans", response_model=ApiResponse[list[PlanResponse]])
async def list_plans() -> ApiResponse[list[PlanResponse]]:
    """List available plans (public, no auth required)."""
    return ok([PlanResponse.from_plan(PLANS[name]) for name in PLAN_ORDER])


@router.get("/subscription", response_model=ApiResponse[SubscriptionResponse])
async def get_subscription(
    gate: GateContext = Depends(get_gate_context),
) -> ApiResponse[SubscriptionResponse]:
    """Get current plan, Stripe status and this month's usage."""
    user = gate.user
    return ok(
        SubscriptionResponse(
            plan=PlanResponse.from_plan(gate.limits),
            status=user.subscription_status,
            stripe_subscription_id=user.stripe_subscription_id,
            current_period_start=user.current_period_start,
            current_period_end=user.current_period_end,
            usage=UsageResponse.build(gate.limits, gate.usage),
        )
    )


@router.get("/usage", response_model=ApiResponse[UsageResponse])
async def get_usage_summary(gate: GateContext = Depends(get_gate_context)) -> ApiResponse[UsageResponse]:
    return ok(UsageResponse.build(gate.limits, gate.usage))


@router.post("/checkout", response_model=ApiResponse[CheckoutResponse])
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[CheckoutResponse]:
    """Create a Stripe Checkout session for subscription upgrade."""
    plan = PLANS.get(body.plan)
    if plan is None or not plan.price_monthly_cents:
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid plan",
            message="Choose 'growth' or 'scale'. Contact sales for Enterprise.",
        )
    if not plan.stripe_price_id:
        raise AppError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Stripe price ID not configured for plan")

    try:
        customer_id = await ensure_stripe_customer(db, current_user)
        session = await create_checkout_session(
            customer_id=customer_id,
            price_id=plan.stripe_price_id,
            user_id=str(current_user.id),
            plan=plan.name,
            success_url=body.success_url
            or f"{settings.frontend_url}/billing?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=body.cancel_url or f"{settings.frontend_url}/pricing",
        )
    except stripe.StripeError as e:
        raise _payment_provider_error(e) from e

    await db.commit()
    return ok(CheckoutResponse(checkout_url=session.url, session_id=session.id))


@router.post("/portal", response_model=ApiResponse[PortalResponse])
async def create_portal(
    body: PortalRequest,
    current_user: User = Depends(get_current_user),
) -> ApiResponse[PortalResponse]:
    """Create a Stripe Customer Portal session for subscription management."""
    if not current_user.stripe_customer_id:
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "No billing account",
            message="No Stripe customer found. Subscribe first.",
        )

    try:
        session = await create_portal_session(
            customer_id=current_user.stripe_customer_id,
            return_url=body.return_url or f"{settings.frontend_url}/billing",
        )
    except stripe.StripeError as e:
        raise _payment_provider_error(e) from e

    return ok(PortalResponse(portal_url=session.url))


@router.get("/plans/{plan_name}", response_model=ApiResponse[PlanResponse])
async def get_plan_details(plan_name: str) -> ApiResponse[PlanResponse]:
    if plan_name not in PLANS:
        raise AppError(status.HTTP_404_NOT_FOUND, "Plan not found")
    return ok(PlanResponse.from_plan(get_plan(plan_name)))
