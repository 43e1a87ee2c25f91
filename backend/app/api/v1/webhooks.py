"""Stripe webhook endpoint: receives and processes Stripe events."""

import logging

import stripe
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.stripe_client import construct_webhook_event
from app.billing.webhooks import handle_event
from app.config import settings
from app.database import get_db
from app.errors import AppError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)) -> dict[str, bool]:
    """Receive and process Stripe webhook events."""
    if not settings.stripe_webhook_secret:
        logger.error("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not set")
        raise AppError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook not configured")

    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    # 2. Verify signature before touching any state
    try:
        event = construct_webhook_event(payload, sig_header)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed")
        raise AppError(status.HTTP_400_BAD_REQUEST, "Invalid signature") from e
    except ValueError as e:
        logger.warning("Invalid webhook payload")
        raise AppError(status.HTTP_400_BAD_REQUEST, "Invalid payload") from e

    # 3. Dispatch to handler
    try:
        await handle_event(db, event)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("Error processing webhook event %s", event.id)
        raise AppError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed") from e

    return {"received": True}
