"""Subscription service: persist Stripe subscription state and project it onto users."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.plans import DEFAULT_PLAN, get_plan
from app.billing.stripe_client import create_customer
from app.database import utcnow
from app.models.subscription import Subscription
from app.models.user import User

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_PAST_DUE = "past_due"
STATUS_CANCELED = "canceled"


async def get_user_by_id(db: AsyncSession, user_id: str | uuid.UUID | None) -> User | None:
    """Load a user from an id that may arrive as a string from Stripe metadata."""
    if not user_id:
        return None
    try:
        parsed = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
    except ValueError:
        logger.warning("Ignoring malformed user id %r", user_id)
        return None
    return await db.get(User, parsed)


async def get_user_by_stripe_customer(db: AsyncSession, stripe_customer_id: str | None) -> User | None:
    """Look up the user linked to a Stripe customer (used by webhooks)."""
    if not stripe_customer_id:
        return None
    result = await db.execute(select(User).where(User.stripe_customer_id == stripe_customer_id))
    return result.scalar_one_or_none()


async def get_stored_subscription(db: AsyncSession, stripe_subscription_id: str | None) -> Subscription | None:
    if not stripe_subscription_id:
        return None
    return await db.get(Subscription, stripe_subscription_id)


async def ensure_stripe_customer(db: AsyncSession, user: User) -> str:
    """Ensure the user has a Stripe customer ID. Create one if missing."""
    if user.stripe_customer_id:
        return user.stripe_customer_id

    customer = await create_customer(
        email=user.email,
        name=user.name or user.email,
        user_id=str(user.id),
    )
    user.stripe_customer_id = customer.id
    await db.flush()
    logger.info("Linked Stripe customer %s to user %s", customer.id, user.id)
    return customer.id


async def upsert_subscription(
    db: AsyncSession,
    user: User,
    stripe_subscription_id: str,
    stripe_customer_id: str | None,
    plan: str,
    status: str,
    current_period_start: datetime | None = None,
    current_period_end: datetime | None = None,
    cancel_at_period_end: bool = False,
) -> Subscription:
    """Merge Stripe subscription state into the local row and the user projection.

    Applying the same state twice leaves the database unchanged.
    """
    subscription = await get_stored_subscription(db, stripe_subscription_id)
    if subscription is None:
        subscription = Subscription(stripe_subscription_id=stripe_subscription_id, user_id=user.id)
        db.add(subscription)

    subscription.user_id = user.id
    subscription.stripe_customer_id = stripe_customer_id
    subscription.plan = plan
    subscription.status = status
    subscription.current_period_start = current_period_start
    subscription.current_period_end = current_period_end
    subscription.cancel_at_period_end = cancel_at_period_end

    user.plan = plan
    if stripe_customer_id:
        user.stripe_customer_id = stripe_customer_id
    user.stripe_subscription_id = stripe_subscription_id
    user.subscription_status = status
    user.current_period_start = current_period_start
    user.current_period_end = current_period_end
    await db.flush()

    logger.info(
        "Synced subscription %s for user %s: plan=%s (%s), status=%s",
        stripe_subscription_id,
        user.id,
        plan,
        get_plan(plan).display_name,
        status,
    )
    return subscription


async def downgrade_to_starter(db: AsyncSession, user: User) -> User:
    """Drop the user back to the free tier (called on cancellation)."""
    user.plan = DEFAULT_PLAN
    user.subscription_status = STATUS_CANCELED
    await db.flush()
    logger.info("Downgraded user %s to %s", user.id, DEFAULT_PLAN)
    return user


async def cancel_subscription(
    db: AsyncSession, user: User, stripe_subscription_id: str
) -> Subscription | None:
    """Mark the stored subscription canceled and downgrade its owner.

    The user is only downgraded when ``stripe_subscription_id`` is the
    subscription currently projected onto them. A late deletion of a
    subscription the user has since replaced leaves their plan alone.
    """
    subscription = await get_stored_subscription(db, stripe_subscription_id)
    if subscription is not None:
        subscription.status = STATUS_CANCELED
        subscription.canceled_at = utcnow()

    if user.stripe_subscription_id in (None, stripe_subscription_id):
        await downgrade_to_starter(db, user)
    else:
        await db.flush()
        logger.info(
            "Subscription %s canceled, user %s keeps %s from subscription %s",
            stripe_subscription_id,
            user.id,
            user.plan,
            user.stripe_subscription_id,
        )
    return subscription


async def set_payment_status(
    db: AsyncSession, user: User, stripe_subscription_id: str | None, status: str
) -> None:
    """Record an invoice outcome on the user and, if stored, the subscription."""
    user.subscription_status = status
    subscription = await get_stored_subscription(db, stripe_subscription_id)
    if subscription is not None:
        subscription.status = status
    await db.flush()
