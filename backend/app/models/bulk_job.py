"""Bulk upload job: one CSV upload processed row by row into pitches."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

TERMINAL_STATUSES = frozenset({JOB_COMPLETED, JOB_FAILED})
UNFINISHED_STATUSES = (JOB_PENDING, JOB_PROCESSING)


class BulkJob(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """State of a bulk pitch-generation job.

    Lifecycle: ``pending -> processing -> completed | failed``. A job whose
    rows all fail validation goes straight from ``pending`` to ``failed``.
    Progress columns hold absolute values and only ever grow.
    """

    __tablename__ = "bulk_jobs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=JOB_PENDING, index=True)
    pitch_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valid_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    pitch_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    errors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    validation_errors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    # Worker that claimed the job. ``updated_at`` doubles as its heartbeat.
    worker_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return (
            f"<BulkJob(id={self.id}, status={self.status}, "
            f"{self.processed_rows}/{self.valid_rows} rows)>"
        )
