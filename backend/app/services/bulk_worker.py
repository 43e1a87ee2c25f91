"""Supervised in-process worker that drives bulk jobs.

The worker lives on ``app.state`` for the lifetime of the application. Each
submitted job runs as one ``asyncio.Task`` with its own database session;
a semaphore bounds how many jobs run at once. Jobs are claimed under the
worker's ``worker_id`` and every row commit refreshes the job's
``updated_at``. On shutdown in-flight tasks are cancelled; once they have
been silent for ``bulk_job_stale_after_seconds`` a later startup fails them
through :meth:`BulkJobWorker.recover_interrupted_jobs`. Jobs another live
process is still driving keep heartbeating and are left alone.
"""

import asyncio
import logging
import uuid
from datetime import timedelta

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.database import utcnow
from app.services.bulk_jobs import BulkRow, RowGenerator, process_bulk_job, recover_interrupted_jobs

logger = logging.getLogger(__name__)


class BulkJobWorker:
    """Runs bulk jobs in the background, at most once per job id at a time."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_concurrent_jobs: int | None = None,
        stale_after: timedelta | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.worker_id = uuid.uuid4().hex
        self._stale_after = (
            stale_after if stale_after is not None else timedelta(seconds=settings.bulk_job_stale_after_seconds)
        )
        self._semaphore = asyncio.Semaphore(max_concurrent_jobs or settings.bulk_worker_max_concurrent_jobs)
        self._tasks: dict[uuid.UUID, asyncio.Task] = {}

    @property
    def in_flight(self) -> set[uuid.UUID]:
        return set(self._tasks)

    def submit(
        self,
        job_id: uuid.UUID,
        rows: list[BulkRow],
        generate: RowGenerator | None = None,
    ) -> asyncio.Task:
        """Schedule ``job_id``. Submitting a job that is already running is a no-op."""
        existing = self._tasks.get(job_id)
        if existing is not None and not existing.done():
            logger.warning("Bulk job %s is already running, ignoring duplicate submit", job_id)
            return existing

        task = asyncio.create_task(self._run(job_id, rows, generate), name=f"bulk-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        logger.info("Queued bulk job %s (%d rows)", job_id, len(rows))
        return task

    async def _run(self, job_id: uuid.UUID, rows: list[BulkRow], generate: RowGenerator | None) -> None:
        async with self._semaphore:
            async with self._session_factory() as db:
                try:
                    await process_bulk_job(db, job_id, rows, generate, worker_id=self.worker_id)
                except asyncio.CancelledError:
                    logger.warning("Bulk job %s cancelled", job_id)
                    raise
                except Exception:
                    logger.exception("Bulk job %s crashed", job_id)

    async def wait_idle(self) -> None:
        """Wait for every in-flight job to finish."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight jobs and wait for them to unwind."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Bulk worker stopped with %d job(s) cancelled", len(tasks))
        self._tasks.clear()

    async def recover_interrupted_jobs(self) -> int:
        """Fail jobs whose worker stopped heartbeating. Run once at startup."""
        stale_before = utcnow() - self._stale_after
        async with self._session_factory() as db:
            recovered = await recover_interrupted_jobs(db, stale_before, worker_id=self.worker_id)
        if recovered:
            logger.warning("Recovered %d interrupted bulk job(s)", recovered)
        return recovered


def get_bulk_worker(request: Request) -> BulkJobWorker:
    """FastAPI dependency returning the application's worker."""
    return request.app.state.bulk_worker
