"""AI-generated narratives and the formatted assets derived from them."""

import uuid

from sqlalchemy import JSON, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

NARRATIVE_READY = "ready"
NARRATIVE_NEEDS_REVIEW = "needs_review"


class Narrative(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Structured sales narrative generated by the LLM for one business."""

    __tablename__ = "narratives"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    industry: Mapped[str] = mapped_column(String(255), nullable=False)
    inputs: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    roi_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    content: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    validation: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=NARRATIVE_READY)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    regenerated_sections: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # LLM accounting
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    assets: Mapped[list["FormattedAsset"]] = relationship(
        back_populates="narrative",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Narrative(id={self.id}, business={self.business_name!r}, status={self.status})>"


class FormattedAsset(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A narrative rendered by one formatter (email sequence, deck, ...)."""

    __tablename__ = "formatted_assets"

    narrative_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("narratives.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    formatter_type: Mapped[str] = mapped_column(String(50), nullable=False)
    content: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    html: Mapped[str] = mapped_column(Text, nullable=False, default="")
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    narrative: Mapped[Narrative] = relationship(back_populates="assets")

    def __repr__(self) -> str:
        return f"<FormattedAsset(id={self.id}, type={self.formatter_type}, narrative={self.narrative_id})>"
