"""Async Stripe API wrapper for PitchForge."""

import logging

import stripe
from stripe import StripeClient

from app.config import settings

logger = logging.getLogger(__name__)

# Metadata key linking Stripe objects back to a PitchForge user.
USER_ID_METADATA_KEY = "user_id"


def get_stripe_client() -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


async def create_customer(email: str, name: str, user_id: str) -> stripe.Customer:
    """Create a Stripe customer tagged with the PitchForge user id."""
    client = get_stripe_client()
    logger.info("Creating Stripe customer for user %s", user_id)
    customer = await client.v1.customers.create_async(
        params={
            "email": email,
            "name": name,
            "metadata": {USER_ID_METADATA_KEY: user_id},
        }
    )
    logger.info("Created Stripe customer %s for user %s", customer.id, user_id)
    return customer


async def create_checkout_session(
    customer_id: str,
    price_id: str,
    user_id: str,
    plan: str,
    success_url: str,
    cancel_url: str,
) -> stripe.checkout.Session:
    """Create a subscription Checkout Session.

    ``user_id`` and ``plan`` are written to both the session and the
    resulting subscription so every later webhook can be attributed.
    """
    client = get_stripe_client()
    metadata = {USER_ID_METADATA_KEY: user_id, "plan": plan}
    logger.info("Creating %s checkout session for customer %s", plan, customer_id)
    return await client.v1.checkout.sessions.create_async(
        params={
            "mode": "subscription",
            "customer": customer_id,
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
        }
    )


async def create_portal_session(
    customer_id: str, return_url: str
) -> stripe.billing_portal.Session:
    """Create a Stripe Customer Portal session for subscription management."""
    client = get_stripe_client()
    logger.info("Creating portal session for customer %s", customer_id)
    return await client.v1.billing_portal.sessions.create_async(
        params={
            "customer": customer_id,
            "return_url": return_url,
        }
    )


async def get_subscription(subscription_id: str) -> stripe.Subscription:
    """Retrieve a Stripe subscription by ID."""
    client = get_stripe_client()
    return await client.v1.subscriptions.retrieve_async(subscription_id)


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify the signature and parse a webhook payload (synchronous).

    Raises:
        stripe.SignatureVerificationError: the signature does not match.
        ValueError: the payload is not valid JSON.
    """
    client = get_stripe_client()
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)
