"""Subscription model: Stripe subscription state keyed by the external id."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, TimestampMixin


class Subscription(TimestampMixin, Base):
    """Mirror of a Stripe subscription.

    Only the billing webhook handlers create or mutate rows. The primary key is
    the Stripe subscription id so that repeated deliveries merge into one row.
    """

    __tablename__ = "subscriptions"

    stripe_subscription_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Plan & status
    plan: Mapped[str] = mapped_column(String(50), nullable=False, default="starter")
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")

    # Billing period
    current_period_start: Mapped[datetime | None] = mapped_column(nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    canceled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.stripe_subscription_id}, user_id={self.user_id}, "
            f"plan={self.plan}, status={self.status})>"
        )
