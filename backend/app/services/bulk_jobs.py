"""Bulk pitch generation: CSV parsing, row validation and the job state machine.

A job moves ``pending -> processing -> completed | failed``. Rows are
processed one at a time. After every row the job's absolute progress
counters are committed so a client polling the job sees partial progress.
One row's failure never aborts the batch.
"""

import csv
import io
import logging
import re
import uuid
import zipfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import status
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import utcnow
from app.errors import AppError
from app.models.bulk_job import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PENDING,
    JOB_PROCESSING,
    UNFINISHED_STATUSES,
    BulkJob,
)
from app.models.pitch import Pitch
from app.services.pitch_service import SOURCE_BULK, generate_pitch_for_user
from app.services.usage_service import increment_usage

logger = logging.getLogger(__name__)

CSV_TEMPLATE_HEADERS: tuple[str, ...] = (
    "businessName",
    "segment",
    "subIndustry",
    "state",
    "city",
    "ownerName",
    "email",
    "phone",
    "customMessage",
    "websiteUrl",
    "googleRating",
    "numReviews",
)

CSV_TEMPLATE_EXAMPLE: tuple[str, ...] = (
    "Joe's Lawn Care",
    "Lawn Care",
    "Residential Lawn Maintenance",
    "Texas",
    "Austin",
    "Joe Smith",
    "joe@example.com",
    "512-555-1234",
    "Looking forward to partnering!",
    "https://joeslawncare.com",
    "4.5",
    "127",
)

INTERRUPTED_ERROR = "Processing was interrupted before completion"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9]")
_MAX_FILENAME_STEM = 50

# Generates one pitch from row data and returns its id.
RowGenerator = Callable[[dict[str, Any]], Awaitable[uuid.UUID]]


class CsvFormatError(ValueError):
    """The upload could not be parsed as CSV with a header row."""


@dataclass
class BulkRow:
    """A validated CSV row. ``row_number`` is the line number in the file."""

    row_number: int
    data: dict[str, Any]


@dataclass
class ValidatedUpload:
    rows: list[BulkRow] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    total_rows: int = 0


def csv_template() -> str:
    """Header line plus one quoted example row."""
    buffer = io.StringIO()
    buffer.write(",".join(CSV_TEMPLATE_HEADERS) + "\n")
    csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n").writerow(CSV_TEMPLATE_EXAMPLE)
    return buffer.getvalue()


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse CSV text into stripped dict rows, skipping fully empty lines.

    Raises:
        CsvFormatError: the text has no header row or is not valid CSV.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    try:
        fieldnames = reader.fieldnames
        if not fieldnames or not any(name and name.strip() for name in fieldnames):
            raise CsvFormatError("CSV has no header row")
        records = []
        for raw in reader:
            record = {
                (key or "").strip(): value.strip() if isinstance(value, str) else ""
                for key, value in raw.items()
                if key is not None
            }
            if any(record.values()):
                records.append(record)
    except csv.Error as exc:
        raise CsvFormatError(str(exc)) from exc
    return records


def validate_row(row: dict[str, str], row_number: int) -> list[dict[str, Any]]:
    """Return every problem with ``row``; an empty list means it is valid."""
    errors: list[dict[str, Any]] = []

    def add(field_name: str, message: str) -> None:
        errors.append({"row": row_number, "field": field_name, "error": message})

    if not row.get("businessName"):
        add("businessName", "Business name is required")
    if not row.get("segment"):
        add("segment", "Segment/Industry is required")

    email = row.get("email")
    if email and not _EMAIL_RE.match(email):
        add("email", "Invalid email format")

    phone = row.get("phone")
    if phone and len(re.sub(r"\D", "", phone)) < 10:
        add("phone", "Phone number should have at least 10 digits")

    rating = row.get("googleRating")
    if rating:
        try:
            rating_value = float(rating)
        except ValueError:
            rating_value = None
        if rating_value is None or not 0 <= rating_value <= 5:
            add("googleRating", "Google rating must be between 0 and 5")

    reviews = row.get("numReviews")
    if reviews and not reviews.isdigit():
        add("numReviews", "Number of reviews must be a positive number")

    return errors


def validate_records(records: list[dict[str, str]]) -> ValidatedUpload:
    """Validate every record. Row numbers start at 2 (line 1 is the header)."""
    upload = ValidatedUpload(total_rows=len(records))
    for index, record in enumerate(records):
        row_number = index + 2
        row_errors = validate_row(record, row_number)
        if row_errors:
            upload.errors.extend(row_errors)
        else:
            upload.rows.append(BulkRow(row_number=row_number, data=record))
    return upload


def row_to_pitch_data(row: dict[str, str], pitch_level: int) -> dict[str, Any]:
    """Translate a template-format CSV row into pitch generation input."""
    rating = row.get("googleRating")
    reviews = row.get("numReviews")
    return {
        "business_name": row.get("businessName"),
        "industry": row.get("segment"),
        "sub_industry": row.get("subIndustry") or None,
        "address": ", ".join(part for part in (row.get("city"), row.get("state")) if part) or None,
        "contact_name": row.get("ownerName") or None,
        "email": row.get("email") or None,
        "phone": row.get("phone") or None,
        "custom_message": row.get("customMessage") or None,
        "website_url": row.get("websiteUrl") or None,
        "google_rating": float(rating) if rating else None,
        "num_reviews": int(reviews) if reviews else None,
        "pitch_level": pitch_level,
    }


def create_job(user_id: uuid.UUID, pitch_level: int, upload: ValidatedUpload) -> BulkJob:
    job = BulkJob(
        user_id=user_id,
        status=JOB_PENDING,
        pitch_level=pitch_level,
        total_rows=upload.total_rows,
        valid_rows=len(upload.rows),
        validation_errors=list(upload.errors),
        pitch_ids=[],
        errors=[],
    )
    if not upload.rows:
        job.status = JOB_FAILED
        job.completed_at = utcnow()
    return job


async def _advance(db: AsyncSession, job_id: uuid.UUID, from_statuses: tuple[str, ...], **values: Any) -> bool:
    """Conditionally update a job. False when it is no longer in ``from_statuses``.

    Every status change and progress write goes through here, so a job that
    recovery has already failed can never be moved again.
    """
    result = await db.execute(
        update(BulkJob)
        .where(BulkJob.id == job_id, BulkJob.status.in_(from_statuses))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _reload(db: AsyncSession, job_id: uuid.UUID) -> BulkJob | None:
    return await db.get(BulkJob, job_id, populate_existing=True)


async def process_bulk_job(
    db: AsyncSession,
    job_id: uuid.UUID,
    rows: list[BulkRow],
    generate: RowGenerator | None = None,
    worker_id: str | None = None,
) -> BulkJob | None:
    """Drive a pending job to completion.

    ``generate`` defaults to rendering a bulk-sourced pitch for the job owner.
    Each row runs inside a savepoint so a failed row leaves no partial pitch.
    If the job stops being ``processing`` mid-run (recovery failed it), the
    current row is rolled back and the job is abandoned without touching
    usage, which recovery has already credited.
    """
    job = await db.get(BulkJob, job_id)
    if job is None:
        logger.warning("Bulk job %s vanished before processing", job_id)
        return None

    user_id = job.user_id
    pitch_level = job.pitch_level
    if generate is None:

        async def generate(data: dict[str, Any]) -> uuid.UUID:
            pitch = await generate_pitch_for_user(
                db, user_id, data, source=SOURCE_BULK, bulk_job_id=job_id
            )
            return pitch.id

    claimed = await _advance(
        db, job_id, (JOB_PENDING,), status=JOB_PROCESSING, started_at=utcnow(), worker_id=worker_id
    )
    await db.commit()
    if not claimed:
        logger.warning("Bulk job %s is no longer pending, not processing it", job_id)
        return await _reload(db, job_id)

    pitch_ids: list[str] = []
    errors: list[dict[str, Any]] = []
    credited = 0
    try:
        for row in rows:
            try:
                async with db.begin_nested():
                    pitch_id = await generate(row_to_pitch_data(row.data, pitch_level))
                pitch_ids.append(str(pitch_id))
            except Exception as exc:
                logger.warning("Bulk job %s row %d failed: %s", job_id, row.row_number, exc)
                errors.append({"row": row.row_number, "error": str(exc) or exc.__class__.__name__})

            progressed = await _advance(
                db,
                job_id,
                (JOB_PROCESSING,),
                processed_rows=len(pitch_ids) + len(errors),
                success_count=len(pitch_ids),
                failed_count=len(errors),
                pitch_ids=list(pitch_ids),
                errors=list(errors),
            )
            if not progressed:
                await db.rollback()
                logger.warning(
                    "Bulk job %s was finalized elsewhere, abandoning at row %d", job_id, row.row_number
                )
                return await _reload(db, job_id)
            await db.commit()
            credited = len(pitch_ids)

        finished = await _advance(
            db,
            job_id,
            (JOB_PROCESSING,),
            status=JOB_COMPLETED if pitch_ids else JOB_FAILED,
            completed_at=utcnow(),
        )
        await db.commit()
    except Exception as exc:
        logger.exception("Bulk job %s failed outside the row loop", job_id)
        await db.rollback()
        finished = await _advance(
            db,
            job_id,
            (JOB_PROCESSING,),
            status=JOB_FAILED,
            completed_at=utcnow(),
            errors=[*errors, {"row": 0, "error": str(exc) or exc.__class__.__name__}],
        )
        await db.commit()

    if finished:
        await increment_usage(db, user_id, bulk_uploads_this_month=1, pitches_generated=credited)
        await db.commit()
    else:
        logger.warning("Bulk job %s was finalized elsewhere before it finished", job_id)

    job = await _reload(db, job_id)
    if job is not None:
        logger.info(
            "Bulk job %s finished: %s (%d ok, %d failed)",
            job_id,
            job.status,
            job.success_count,
            job.failed_count,
        )
    return job


async def recover_interrupted_jobs(
    db: AsyncSession,
    stale_before: datetime,
    worker_id: str | None = None,
) -> int:
    """Fail unfinished jobs whose worker has stopped making progress.

    A job is orphaned when it is pending or processing and was last updated
    before ``stale_before``. Jobs claimed by ``worker_id`` are never touched.
    Each job is failed with a compare-and-set on ``updated_at``, so a worker
    that writes progress in the meantime keeps its job. Rows that already
    succeeded keep their pitches and are credited to the owner's usage.
    """
    query = select(BulkJob).where(
        BulkJob.status.in_(UNFINISHED_STATUSES),
        BulkJob.updated_at < stale_before,
    )
    if worker_id is not None:
        query = query.where(or_(BulkJob.worker_id.is_(None), BulkJob.worker_id != worker_id))
    jobs = list((await db.execute(query)).scalars().all())

    recovered = 0
    for job in jobs:
        result = await db.execute(
            update(BulkJob)
            .where(
                BulkJob.id == job.id,
                BulkJob.status.in_(UNFINISHED_STATUSES),
                BulkJob.updated_at == job.updated_at,
            )
            .values(
                status=JOB_FAILED,
                completed_at=utcnow(),
                errors=[*(job.errors or []), {"row": 0, "error": INTERRUPTED_ERROR}],
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info("Bulk job %s made progress during recovery, leaving it alone", job.id)
            continue
        if job.success_count:
            await increment_usage(db, job.user_id, pitches_generated=job.success_count)
        await db.commit()
        recovered += 1
        logger.warning(
            "Marked interrupted bulk job %s as failed (%d/%d rows processed, worker %s)",
            job.id,
            job.processed_rows,
            job.valid_rows,
            job.worker_id,
        )
    return recovered


def safe_filename(name: str | None) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", name or "pitch")[:_MAX_FILENAME_STEM]


def build_pitch_zip(pitches: list[Pitch]) -> bytes:
    """ZIP archive with one ``{name}_{id}.html`` file per pitch."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for pitch in pitches:
            archive.writestr(f"{safe_filename(pitch.business_name)}_{pitch.id}.html", pitch.html or "")
    return buffer.getvalue()


async def load_job_pitches(db: AsyncSession, job: BulkJob) -> list[Pitch]:
    ids = [uuid.UUID(str(pitch_id)) for pitch_id in job.pitch_ids or []]
    if not ids:
        return []
    result = await db.execute(select(Pitch).where(Pitch.id.in_(ids), Pitch.user_id == job.user_id))
    return list(result.scalars().all())


async def get_owned_job(db: AsyncSession, job_id: uuid.UUID, user_id: uuid.UUID) -> BulkJob:
    job = await db.get(BulkJob, job_id)
    if job is None:
        raise AppError(status.HTTP_404_NOT_FOUND, "Job not found")
    if job.user_id != user_id:
        raise AppError(status.HTTP_403_FORBIDDEN, "Access denied")
    return job


async def list_jobs(
    db: AsyncSession, user_id: uuid.UUID, limit: int = 20, offset: int = 0
) -> tuple[list[BulkJob], int]:
    total = await db.scalar(select(func.count()).select_from(BulkJob).where(BulkJob.user_id == user_id))
    result = await db.execute(
        select(BulkJob)
        .where(BulkJob.user_id == user_id)
        .order_by(BulkJob.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0
