"""Tests for subscription service: Stripe state persistence (pure DB, no HTTP)."""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.subscription import Subscription
from app.services.subscription_service import (
    cancel_subscription,
    downgrade_to_starter,
    ensure_stripe_customer,
    get_stored_subscription,
    get_user_by_id,
    get_user_by_stripe_customer,
    set_payment_status,
    upsert_subscription,
)

from conftest import create_user


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_user_by_id_accepts_string(self, db_session: AsyncSession):
        user = await create_user(db_session)
        found = await get_user_by_id(db_session, str(user.id))
        assert found is not None and found.id == user.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [None, "", "not-a-uuid"])
    async def test_get_user_by_id_rejects_bad_values(self, db_session: AsyncSession, raw):
        assert await get_user_by_id(db_session, raw) is None

    @pytest.mark.asyncio
    async def test_get_user_by_stripe_customer(self, db_session: AsyncSession):
        user = await create_user(db_session)
        user.stripe_customer_id = "cus_lookup"
        await db_session.commit()

        found = await get_user_by_stripe_customer(db_session, "cus_lookup")
        assert found is not None and found.id == user.id
        assert await get_user_by_stripe_customer(db_session, "cus_missing") is None
        assert await get_user_by_stripe_customer(db_session, None) is None

    @pytest.mark.asyncio
    async def test_get_stored_subscription_none_id(self, db_session: AsyncSession):
        assert await get_stored_subscription(db_session, None) is None


class TestUpsertSubscription:
    @pytest.mark.asyncio
    async def test_creates_row_and_projects_onto_user(self, db_session: AsyncSession):
        user = await create_user(db_session)
        sub = await upsert_subscription(
            db_session,
            user=user,
            stripe_subscription_id="sub_new",
            stripe_customer_id="cus_new",
            plan="scale",
            status="active",
            current_period_start=datetime(2026, 1, 1),
            current_period_end=datetime(2026, 2, 1),
        )

        assert sub.user_id == user.id
        assert sub.plan == "scale"
        assert user.plan == "scale"
        assert user.stripe_customer_id == "cus_new"
        assert user.stripe_subscription_id == "sub_new"
        assert user.current_period_end == datetime(2026, 2, 1)

    @pytest.mark.asyncio
    async def test_second_upsert_updates_same_row(self, db_session: AsyncSession):
        user = await create_user(db_session)
        await upsert_subscription(db_session, user, "sub_same", "cus_same", "growth", "active")
        await upsert_subscription(
            db_session, user, "sub_same", "cus_same", "scale", "active", cancel_at_period_end=True
        )
        await db_session.commit()

        stored = await get_stored_subscription(db_session, "sub_same")
        assert stored.plan == "scale"
        assert stored.cancel_at_period_end is True
        assert user.plan == "scale"

    @pytest.mark.asyncio
    async def test_missing_customer_keeps_existing_link(self, db_session: AsyncSession):
        user = await create_user(db_session)
        user.stripe_customer_id = "cus_keep"
        await upsert_subscription(db_session, user, "sub_keep", None, "growth", "trialing")
        assert user.stripe_customer_id == "cus_keep"
        assert user.subscription_status == "trialing"


class TestDowngradeAndCancel:
    @pytest.mark.asyncio
    async def test_downgrade_to_starter(self, db_session: AsyncSession):
        user = await create_user(db_session, "scale")
        await downgrade_to_starter(db_session, user)
        assert user.plan == "starter"
        assert user.subscription_status == "canceled"

    @pytest.mark.asyncio
    async def test_cancel_marks_row_and_downgrades(self, db_session: AsyncSession):
        user = await create_user(db_session, "growth")
        db_session.add(Subscription(stripe_subscription_id="sub_cancel", user_id=user.id, plan="growth"))
        await db_session.flush()

        sub = await cancel_subscription(db_session, user, "sub_cancel")
        assert sub.status == "canceled"
        assert sub.canceled_at is not None
        assert user.plan == "starter"

    @pytest.mark.asyncio
    async def test_cancel_of_superseded_subscription_keeps_plan(self, db_session: AsyncSession):
        user = await create_user(db_session, "scale")
        user.stripe_subscription_id = "sub_current"
        db_session.add(Subscription(stripe_subscription_id="sub_previous", user_id=user.id, plan="growth"))
        await db_session.flush()

        sub = await cancel_subscription(db_session, user, "sub_previous")

        assert sub.status == "canceled"
        assert user.plan == "scale"
        assert user.stripe_subscription_id == "sub_current"

    @pytest.mark.asyncio
    async def test_cancel_without_stored_row_still_downgrades(self, db_session: AsyncSession):
        user = await create_user(db_session, "growth")
        assert await cancel_subscription(db_session, user, "sub_unknown") is None
        assert user.plan == "starter"


class TestSetPaymentStatus:
    @pytest.mark.asyncio
    async def test_updates_user_and_row(self, db_session: AsyncSession):
        user = await create_user(db_session, "growth")
        db_session.add(Subscription(stripe_subscription_id="sub_pay", user_id=user.id, plan="growth"))
        await db_session.flush()

        await set_payment_status(db_session, user, "sub_pay", "past_due")
        assert user.subscription_status == "past_due"
        assert (await get_stored_subscription(db_session, "sub_pay")).status == "past_due"
        assert user.plan == "growth"


class TestEnsureStripeCustomer:
    @pytest.mark.asyncio
    async def test_existing_customer_returned_without_api_call(self, db_session: AsyncSession):
        user = await create_user(db_session)
        user.stripe_customer_id = "cus_already"
        with patch("app.services.subscription_service.create_customer", new_callable=AsyncMock) as create:
            assert await ensure_stripe_customer(db_session, user) == "cus_already"
        create.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_and_links_customer(self, db_session: AsyncSession):
        user = await create_user(db_session)
        with patch(
            "app.services.subscription_service.create_customer",
            new_callable=AsyncMock,
            return_value=SimpleNamespace(id="cus_created"),
        ) as create:
            assert await ensure_stripe_customer(db_session, user) == "cus_created"

        assert user.stripe_customer_id == "cus_created"
        assert create.await_args.kwargs["user_id"] == str(user.id)
