"""Usage service: monthly usage counters keyed by ``{user_id}_{YYYY-MM}``."""

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.plans import UsageType
from app.database import utcnow
from app.models.usage import USAGE_COUNTERS, UsageRecord

logger = logging.getLogger(__name__)

# Usage record column holding consumption for each metered monthly quota.
USAGE_COLUMNS: dict[UsageType, str] = {
    UsageType.PITCHES: "pitches_generated",
    UsageType.MARKET_REPORTS: "market_reports_this_month",
    UsageType.NARRATIVES: "narratives_generated",
    UsageType.AI_REGENERATIONS: "ai_regenerations",
}

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class UsageSnapshot:
    """Counters for one user and period; all zero if nothing was recorded."""

    period: str
    pitches_generated: int = 0
    bulk_uploads_this_month: int = 0
    narratives_generated: int = 0
    ai_regenerations: int = 0
    market_reports_this_month: int = 0

    def for_usage_type(self, usage_type: UsageType) -> int:
        column = USAGE_COLUMNS.get(usage_type)
        return getattr(self, column) if column else 0

    def to_dict(self) -> dict:
        return asdict(self)


def current_period(now: datetime | None = None) -> str:
    """Calendar month in UTC as ``YYYY-MM``."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m")


def usage_record_id(user_id: uuid.UUID | str, period: str) -> str:
    return f"{user_id}_{period}"


async def get_usage(
    db: AsyncSession, user_id: uuid.UUID, period: str | None = None
) -> UsageSnapshot:
    """Return the user's counters for ``period`` (defaults to this month)."""
    period = period or current_period()
    result = await db.execute(
        select(UsageRecord)
        .where(UsageRecord.id == usage_record_id(user_id, period))
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if record is None:
        return UsageSnapshot(period=period)

    return UsageSnapshot(
        period=period,
        **{counter: getattr(record, counter) or 0 for counter in USAGE_COUNTERS},
    )


async def increment_usage(
    db: AsyncSession,
    user_id: uuid.UUID,
    period: str | None = None,
    **deltas: int,
) -> bool:
    """Atomically add ``deltas`` to the user's counters for ``period``.

    Creates the record on first use (merge-upsert). Counter increments are
    commutative, so concurrent requests for the same user are safe. This is
    best-effort: a failure is logged and reported as ``False``, never raised.

    Usage::

        await increment_usage(db, user.id, pitches_generated=1)
    """
    unknown = set(deltas) - set(USAGE_COUNTERS)
    if unknown:
        raise ValueError(f"Unknown usage counters: {sorted(unknown)}")

    deltas = {name: value for name, value in deltas.items() if value}
    if not deltas:
        return True

    period = period or current_period()
    now = utcnow()
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Usage upsert is not supported on dialect {dialect!r}")

    stmt = insert(UsageRecord).values(
        id=usage_record_id(user_id, period),
        user_id=user_id,
        period=period,
        updated_at=now,
        **deltas,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UsageRecord.id],
        set_={
            **{name: getattr(UsageRecord, name) + stmt.excluded[name] for name in deltas},
            "updated_at": now,
        },
    )

    try:
        async with db.begin_nested():
            await db.execute(stmt)
    except SQLAlchemyError:
        logger.exception("Failed to increment usage for user %s (%s)", user_id, deltas)
        return False

    logger.debug("Incremented usage for user %s in %s: %s", user_id, period, deltas)
    return True
