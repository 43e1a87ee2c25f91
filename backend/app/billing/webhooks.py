"""Stripe webhook event handlers: process subscription lifecycle events.

Handlers resolve the PitchForge user from ``metadata["user_id"]`` first and
the Stripe customer id second. Events that cannot be attributed to a user
are logged and dropped without touching the database.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.plans import get_plan_by_price_id
from app.billing.stripe_client import USER_ID_METADATA_KEY, get_subscription
from app.models.user import User
from app.services.subscription_service import (
    STATUS_ACTIVE,
    STATUS_PAST_DUE,
    cancel_subscription,
    get_stored_subscription,
    get_user_by_id,
    get_user_by_stripe_customer,
    set_payment_status,
    upsert_subscription,
)

logger = logging.getLogger(__name__)

# Paid subscriptions whose price is not in the plan registry.
FALLBACK_PAID_PLAN = "growth"


def _ts_to_naive(ts: int | None) -> datetime | None:
    """Convert Stripe Unix timestamp to naive UTC datetime."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


def _get_first_item(stripe_sub: stripe.Subscription):
    """Get the first subscription item, using bracket notation to avoid
    collision with Python dict .items() in newer Stripe API versions.
    """
    sub_items = stripe_sub["items"]
    if sub_items and sub_items.data:
        return sub_items.data[0]
    return None


def _get_price_id_from_subscription(stripe_sub: stripe.Subscription) -> str | None:
    """Extract the first price ID from a Stripe subscription's items."""
    item = _get_first_item(stripe_sub)
    return item.price.id if item else None


def _get_period(stripe_sub: stripe.Subscription) -> tuple[datetime | None, datetime | None]:
    """Extract current period start/end.

    In Stripe API 2025-08-27 (basil), current_period_start/end moved from the
    subscription object to the subscription item. Older payloads carry them on
    the subscription.
    """
    source = _get_first_item(stripe_sub)
    if source is None or getattr(source, "current_period_start", None) is None:
        source = stripe_sub
    return (
        _ts_to_naive(getattr(source, "current_period_start", None)),
        _ts_to_naive(getattr(source, "current_period_end", None)),
    )


def _metadata_user_id(obj: Any) -> str | None:
    metadata = getattr(obj, "metadata", None) or {}
    return metadata.get(USER_ID_METADATA_KEY)


def _invoice_subscription_id(invoice: Any) -> str | None:
    """Subscription id of an invoice, wherever the API version put it."""
    subscription_id = getattr(invoice, "subscription", None)
    if subscription_id:
        return subscription_id
    parent = getattr(invoice, "parent", None)
    details = getattr(parent, "subscription_details", None) if parent else None
    return getattr(details, "subscription", None) if details else None


async def resolve_user(db: AsyncSession, obj: Any) -> User | None:
    """Find the user an event object belongs to."""
    user = await get_user_by_id(db, _metadata_user_id(obj))
    if user is None:
        user = await get_user_by_stripe_customer(db, getattr(obj, "customer", None))
    return user


async def _sync_subscription(db: AsyncSession, user: User, stripe_sub: stripe.Subscription) -> None:
    price_id = _get_price_id_from_subscription(stripe_sub)
    plan = get_plan_by_price_id(price_id)
    if plan is None:
        logger.warning(
            "Unknown price ID %s in subscription %s, defaulting to %s",
            price_id,
            stripe_sub.id,
            FALLBACK_PAID_PLAN,
        )
        plan = FALLBACK_PAID_PLAN

    period_start, period_end = _get_period(stripe_sub)
    await upsert_subscription(
        db,
        user=user,
        stripe_subscription_id=stripe_sub.id,
        stripe_customer_id=stripe_sub.customer,
        plan=plan,
        status=stripe_sub.status,
        current_period_start=period_start,
        current_period_end=period_end,
        cancel_at_period_end=bool(getattr(stripe_sub, "cancel_at_period_end", False)),
    )


async def handle_checkout_session_completed(db: AsyncSession, event: stripe.Event) -> None:
    """Handle checkout.session.completed: link the customer and activate the subscription."""
    session = event.data.object
    user = await resolve_user(db, session)
    if user is None:
        logger.warning("No user found for checkout session %s (customer %s)", session.id, session.customer)
        return

    if session.customer and user.stripe_customer_id != session.customer:
        user.stripe_customer_id = session.customer
        await db.flush()

    subscription_id = session.subscription
    if not subscription_id:
        logger.info("Checkout session %s has no subscription (one-time?), skipping", session.id)
        return

    # Fetch full subscription from Stripe to get price and period info
    stripe_sub = await get_subscription(subscription_id)
    await _sync_subscription(db, user, stripe_sub)
    logger.info("Checkout completed: subscription %s activated for user %s", subscription_id, user.id)


async def handle_subscription_updated(db: AsyncSession, event: stripe.Event) -> None:
    """Handle customer.subscription.created/updated: sync plan, status and period."""
    stripe_sub = event.data.object
    user = await resolve_user(db, stripe_sub)
    if user is None:
        logger.warning(
            "No user found for Stripe subscription %s (customer %s)",
            stripe_sub.id,
            stripe_sub.customer,
        )
        return

    await _sync_subscription(db, user, stripe_sub)


async def handle_subscription_deleted(db: AsyncSession, event: stripe.Event) -> None:
    """Handle customer.subscription.deleted: cancel it, downgrading if it was current."""
    stripe_sub = event.data.object
    user = await resolve_user(db, stripe_sub)
    if user is None:
        logger.warning(
            "No user found for deleted subscription %s (customer %s), ignoring",
            stripe_sub.id,
            stripe_sub.customer,
        )
        return

    await cancel_subscription(db, user, stripe_sub.id)
    logger.info("Subscription deleted: %s (user %s now on %s)", stripe_sub.id, user.id, user.plan)


async def _resolve_invoice_user(db: AsyncSession, invoice: Any, subscription_id: str | None) -> User | None:
    user = await resolve_user(db, invoice)
    if user is None and subscription_id:
        stored = await get_stored_subscription(db, subscription_id)
        if stored is not None:
            user = await db.get(User, stored.user_id)
    return user


async def handle_invoice_paid(db: AsyncSession, event: stripe.Event) -> None:
    """Handle invoice.paid: confirm active status."""
    invoice = event.data.object
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        logger.info("Invoice %s has no subscription (one-time), skipping", invoice.id)
        return

    user = await _resolve_invoice_user(db, invoice, subscription_id)
    if user is None:
        logger.warning("No user found for invoice %s (subscription %s)", invoice.id, subscription_id)
        return

    await set_payment_status(db, user, subscription_id, STATUS_ACTIVE)
    logger.info("Invoice paid: subscription %s confirmed active", subscription_id)


async def handle_invoice_payment_failed(db: AsyncSession, event: stripe.Event) -> None:
    """Handle invoice.payment_failed: mark past_due, keep the plan."""
    invoice = event.data.object
    subscription_id = _invoice_subscription_id(invoice)
    user = await _resolve_invoice_user(db, invoice, subscription_id)
    if user is None:
        logger.warning("No user found for failed invoice %s", invoice.id)
        return

    await set_payment_status(db, user, subscription_id, STATUS_PAST_DUE)
    logger.info("Payment failed: user %s marked as past_due", user.id)


# Map event types to handler functions
EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_updated,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.paid": handle_invoice_paid,
    "invoice.payment_failed": handle_invoice_payment_failed,
}


async def handle_event(db: AsyncSession, event: stripe.Event) -> bool:
    """Dispatch ``event``. Returns False for event types nobody handles."""
    handler = EVENT_HANDLERS.get(event.type)
    if handler is None:
        logger.info("Unhandled webhook event type: %s", event.type)
        return False

    logger.info("Processing webhook event: %s (id=%s)", event.type, event.id)
    await handler(db, event)
    return True
