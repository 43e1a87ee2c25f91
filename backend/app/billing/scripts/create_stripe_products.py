"""Create Stripe products and prices for the paid self-serve plans (test mode).

Run once inside the backend container:
    python -m app.billing.scripts.create_stripe_products

Outputs price IDs to set in .env:
    STRIPE_GROWTH_PRICE_ID=price_xxx
    STRIPE_SCALE_PRICE_ID=price_xxx
"""

import asyncio

import stripe
from stripe import StripeClient

from app.billing.plans import get_plan
from app.config import settings

SELF_SERVE_PLANS = ("growth", "scale")


def product_description(plan_name: str) -> str:
    return ", ".join(get_plan(plan_name).features)


async def create_plan_price(client: StripeClient, plan_name: str) -> str:
    plan = get_plan(plan_name)
    product = await client.v1.products.create_async(
        params={
            "name": f"PitchForge {plan.display_name}",
            "description": product_description(plan_name),
            "metadata": {"plan": plan.name},
        }
    )
    price = await client.v1.prices.create_async(
        params={
            "product": product.id,
            "unit_amount": plan.price_monthly_cents,
            "currency": "usd",
            "recurring": {"interval": "month"},
        }
    )
    print(f"Created product: {product.name} ({product.id})")
    print(f"  Price: ${plan.price_monthly_cents / 100:.2f}/mo ({price.id})")
    return price.id


async def main() -> None:
    if not settings.stripe_secret_key:
        print("ERROR: STRIPE_SECRET_KEY is not set in .env")
        return

    client = StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )

    price_ids = {name: await create_plan_price(client, name) for name in SELF_SERVE_PLANS}

    print("\n--- Add these to your .env ---")
    for name, price_id in price_ids.items():
        print(f"STRIPE_{name.upper()}_PRICE_ID={price_id}")


if __name__ == "__main__":
    asyncio.run(main())
