"""Content cache rows for expensive AI and external-data lookups."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class CacheEntry(Base):
    """One cached payload, keyed by a truncated SHA-256 of its request parameters."""

    __tablename__ = "cache_entries"

    cache_key: Mapped[str] = mapped_column(String(32), primary_key=True)
    data_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    params: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    data: Mapped[Any] = mapped_column(JSON, nullable=True)
    cached_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    hit_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    last_hit_at: Mapped[datetime | None] = mapped_column(nullable=True)
    ttl_seconds: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<CacheEntry(key={self.cache_key}, type={self.data_type}, hits={self.hit_count})>"
