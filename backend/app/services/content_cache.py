"""Content cache: memoize expensive AI and external-data lookups in the database.

Entries are keyed by a deterministic hash of ``{data_type, **params}`` and are
valid for a fixed, per-data-type TTL. Expiry is lazy: a stale row is treated
as absent on read and only removed by :meth:`ContentCache.cleanup_expired`.

Caching is an optimization. Every write and hit-count failure is logged and
swallowed so the caller's own operation never fails because of the cache.
"""

import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import utcnow
from app.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

HOUR = 60 * 60
DAY = 24 * HOUR

# TTL in seconds per data type. Not configurable per call.
CACHE_TTL: dict[str, int] = {
    "competitors": DAY,
    "demographics": 7 * DAY,
    "establishments": 7 * DAY,
    "trends": DAY,
    "metrics": DAY,
    "narratives": DAY,
    "sec_company": DAY,
    "logos": 7 * DAY,
}
DEFAULT_TTL_TYPE = "metrics"

KEY_LENGTH = 32
_MAX_PARAM_STRING = 100


def ttl_for(data_type: str) -> int:
    return CACHE_TTL.get(data_type, CACHE_TTL[DEFAULT_TTL_TYPE])


def generate_cache_key(data_type: str, params: dict[str, Any]) -> str:
    """Deterministic key for a lookup.

    Keys are sorted at every nesting level before hashing, so two parameter
    dicts that differ only in insertion order produce the same key.
    """
    payload = json.dumps(
        {"data_type": data_type, "params": params},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:KEY_LENGTH]


def summarize_params(params: dict[str, Any]) -> dict[str, Any]:
    """Compact copy of params for storage alongside the entry (debugging only)."""
    summary: dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, str) and len(value) > _MAX_PARAM_STRING:
            summary[key] = value[:_MAX_PARAM_STRING] + "..."
        elif isinstance(value, (list, tuple)):
            summary[key] = f"[{len(value)} items]"
        else:
            summary[key] = value
    return summary


@dataclass
class CachedResult:
    data: Any
    cached_at: datetime
    hit_count: int
    from_cache: bool = True


@dataclass
class FetchResult:
    data: Any
    from_cache: bool
    cached_at: datetime | None = None


class ContentCache:
    """TTL'd key-value cache backed by the ``cache_entries`` table.

    Args:
        db: Session the cache reads and writes through. Writes happen inside
            savepoints so a failed cache statement never poisons the caller's
            transaction.
        clock: Returns the current naive-UTC time. Injected by tests.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock

    async def get(self, data_type: str, params: dict[str, Any]) -> CachedResult | None:
        """Return the entry if present and fresh, else None."""
        key = generate_cache_key(data_type, params)
        try:
            result = await self.db.execute(
                select(CacheEntry)
                .where(CacheEntry.cache_key == key)
                .execution_options(populate_existing=True)
            )
            entry = result.scalar_one_or_none()
        except SQLAlchemyError:
            logger.warning("Cache read failed for %s/%s", data_type, key, exc_info=True)
            return None

        if entry is None:
            return None

        now = self.clock()
        if now - entry.cached_at > timedelta(seconds=ttl_for(data_type)):
            logger.debug("Cache expired for %s/%s", data_type, key)
            return None

        cached = CachedResult(data=entry.data, cached_at=entry.cached_at, hit_count=entry.hit_count)
        await self._record_hit(key, now)
        return cached

    async def _record_hit(self, key: str, now: datetime) -> None:
        try:
            async with self.db.begin_nested():
                await self.db.execute(
                    update(CacheEntry)
                    .where(CacheEntry.cache_key == key)
                    .values(hit_count=CacheEntry.hit_count + 1, last_hit_at=now)
                )
        except SQLAlchemyError:
            logger.warning("Failed to record cache hit for %s", key, exc_info=True)

    async def set(self, data_type: str, params: dict[str, Any], data: Any) -> bool:
        """Upsert the entry (last writer wins) and restart its freshness clock."""
        key = generate_cache_key(data_type, params)
        now = self.clock()
        try:
            async with self.db.begin_nested():
                entry = await self.db.get(CacheEntry, key)
                if entry is None:
                    entry = CacheEntry(cache_key=key, data_type=data_type)
                    self.db.add(entry)
                entry.params = summarize_params(params)
                entry.data = data
                entry.cached_at = now
                entry.hit_count = 0
                entry.last_hit_at = None
                entry.ttl_seconds = ttl_for(data_type)
        except (SQLAlchemyError, TypeError, ValueError):
            logger.warning("Cache write failed for %s/%s", data_type, key, exc_info=True)
            return False

        logger.debug("Cached %s/%s", data_type, key)
        return True

    async def get_or_fetch(
        self,
        data_type: str,
        params: dict[str, Any],
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> FetchResult:
        """Read-through helper. A ``None`` fetch result is returned but not cached."""
        cached = await self.get(data_type, params)
        if cached is not None:
            return FetchResult(data=cached.data, from_cache=True, cached_at=cached.cached_at)

        data = await fetch_fn()
        if data is not None:
            await self.set(data_type, params, data)
        return FetchResult(data=data, from_cache=False)

    async def invalidate(self, data_type: str, params: dict[str, Any]) -> bool:
        """Delete one entry. Returns True if a row was removed."""
        key = generate_cache_key(data_type, params)
        result = await self.db.execute(delete(CacheEntry).where(CacheEntry.cache_key == key))
        return bool(result.rowcount)

    async def cleanup_expired(self, batch_size: int = 50) -> dict[str, int]:
        """Delete up to ``batch_size`` expired entries per data type."""
        now = self.clock()
        deleted: dict[str, int] = {}

        types_result = await self.db.execute(select(CacheEntry.data_type).distinct())
        for data_type in types_result.scalars().all():
            cutoff = now - timedelta(seconds=ttl_for(data_type))
            keys_result = await self.db.execute(
                select(CacheEntry.cache_key)
                .where(CacheEntry.data_type == data_type, CacheEntry.cached_at < cutoff)
                .limit(batch_size)
            )
            keys = list(keys_result.scalars().all())
            if not keys:
                continue
            await self.db.execute(delete(CacheEntry).where(CacheEntry.cache_key.in_(keys)))
            deleted[data_type] = len(keys)

        if deleted:
            logger.info("Cache cleanup removed %d entries: %s", sum(deleted.values()), deleted)
        return deleted

    async def stats(self) -> dict[str, Any]:
        """Entry counts, hit totals and age range across the whole cache."""
        totals = await self.db.execute(
            select(
                func.count(),
                func.coalesce(func.sum(CacheEntry.hit_count), 0),
                func.min(CacheEntry.cached_at),
                func.max(CacheEntry.cached_at),
            ).select_from(CacheEntry)
        )
        total_entries, total_hits, oldest, newest = totals.one()

        by_type_result = await self.db.execute(
            select(CacheEntry.data_type, func.count()).group_by(CacheEntry.data_type)
        )
        by_type = {data_type: count for data_type, count in by_type_result.all()}

        return {
            "total_entries": total_entries,
            "by_type": by_type,
            "total_hits": int(total_hits),
            "avg_hits_per_entry": round(total_hits / total_entries, 1) if total_entries else 0,
            "oldest_entry": oldest,
            "newest_entry": newest,
        }
