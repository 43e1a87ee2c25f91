"""Monthly usage counters per user."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow

# Counter columns that can be incremented through the usage service.
USAGE_COUNTERS = (
    "pitches_generated",
    "bulk_uploads_this_month",
    "narratives_generated",
    "ai_regenerations",
    "market_reports_this_month",
)


class UsageRecord(Base):
    """Usage for one user in one calendar month.

    The id is ``"{user_id}_{YYYY-MM}"``; a new month means a new row, so no
    reset job is needed.
    """

    __tablename__ = "usage_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False, index=True)

    pitches_generated: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    bulk_uploads_this_month: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    narratives_generated: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    ai_regenerations: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    market_reports_this_month: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<UsageRecord(id={self.id!r}, pitches={self.pitches_generated})>"
