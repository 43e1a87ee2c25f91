"""Generated sales pitch documents."""

import uuid

from sqlalchemy import JSON, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Pitch(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A rendered HTML pitch for one prospect business."""

    __tablename__ = "pitches"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Prospect details
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Business Owner")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    website_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    industry: Mapped[str] = mapped_column(String(255), nullable=False)
    sub_industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    google_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    num_reviews: Mapped[int | None] = mapped_column(Integer, nullable=True)
    custom_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Rendering
    pitch_level: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    html: Mapped[str] = mapped_column(Text, nullable=False)
    roi_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    options: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Provenance
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="single")  # single, bulk
    bulk_job_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("bulk_jobs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    share_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Pitch(id={self.id}, business={self.business_name!r}, level={self.pitch_level})>"
