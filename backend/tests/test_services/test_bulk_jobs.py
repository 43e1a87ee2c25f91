"""Tests for bulk CSV parsing, row validation and job processing."""

import io
import uuid
import zipfile
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import utcnow
from app.models.bulk_job import JOB_COMPLETED, JOB_FAILED, JOB_PENDING, JOB_PROCESSING, BulkJob
from app.models.pitch import Pitch
from app.services.bulk_jobs import (
    CSV_TEMPLATE_HEADERS,
    INTERRUPTED_ERROR,
    BulkRow,
    CsvFormatError,
    ValidatedUpload,
    build_pitch_zip,
    create_job,
    csv_template,
    parse_csv,
    process_bulk_job,
    recover_interrupted_jobs,
    row_to_pitch_data,
    safe_filename,
    validate_records,
    validate_row,
)
from app.services.usage_service import get_usage

from conftest import create_user

HEADER = ",".join(CSV_TEMPLATE_HEADERS)


def _row(**overrides) -> dict[str, str]:
    row = {name: "" for name in CSV_TEMPLATE_HEADERS}
    row.update({"businessName": "Joe's Lawn Care", "segment": "Lawn Care"})
    row.update(overrides)
    return row


class TestTemplate:
    def test_template_round_trips_through_parser(self):
        records = parse_csv(csv_template())
        assert len(records) == 1
        assert list(records[0]) == list(CSV_TEMPLATE_HEADERS)
        assert records[0]["businessName"] == "Joe's Lawn Care"
        assert validate_row(records[0], 2) == []


class TestParseCsv:
    def test_skips_blank_lines_and_strips(self):
        text = "businessName,segment\n  Acme  , Fitness \n,\n\nBeta,Bakery\n"
        assert parse_csv(text) == [
            {"businessName": "Acme", "segment": "Fitness"},
            {"businessName": "Beta", "segment": "Bakery"},
        ]

    def test_strips_byte_order_mark(self):
        assert parse_csv("\ufeffbusinessName,segment\nAcme,Fitness\n")[0]["businessName"] == "Acme"

    def test_header_only_gives_no_records(self):
        assert parse_csv(HEADER + "\n") == []

    @pytest.mark.parametrize("text", ["", "\n\n"])
    def test_missing_header_raises(self, text):
        with pytest.raises(CsvFormatError):
            parse_csv(text)


class TestValidateRow:
    def test_required_fields(self):
        errors = validate_row({"businessName": "", "segment": ""}, 2)
        assert {e["field"] for e in errors} == {"businessName", "segment"}
        assert all(e["row"] == 2 for e in errors)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("email", "not-an-email"),
            ("phone", "555-1234"),
            ("googleRating", "5.5"),
            ("googleRating", "great"),
            ("numReviews", "-3"),
            ("numReviews", "lots"),
        ],
    )
    def test_invalid_optional_fields(self, field, value):
        errors = validate_row(_row(**{field: value}), 7)
        assert [e["field"] for e in errors] == [field]

    def test_valid_optional_fields(self):
        row = _row(email="joe@example.com", phone="(512) 555-1234", googleRating="0", numReviews="127")
        assert validate_row(row, 2) == []

    def test_validate_records_numbers_rows_from_two(self):
        upload = validate_records([_row(), _row(businessName=""), _row()])
        assert upload.total_rows == 3
        assert [r.row_number for r in upload.rows] == [2, 4]
        assert upload.errors[0]["row"] == 3


class TestRowToPitchData:
    def test_maps_template_columns(self):
        data = row_to_pitch_data(
            _row(city="Austin", state="Texas", googleRating="4.5", numReviews="127", ownerName="Joe"),
            pitch_level=3,
        )
        assert data["business_name"] == "Joe's Lawn Care"
        assert data["industry"] == "Lawn Care"
        assert data["address"] == "Austin, Texas"
        assert data["google_rating"] == 4.5
        assert data["num_reviews"] == 127
        assert data["contact_name"] == "Joe"
        assert data["pitch_level"] == 3

    def test_blank_optionals_become_none(self):
        data = row_to_pitch_data(_row(), pitch_level=1)
        assert data["address"] is None
        assert data["google_rating"] is None
        assert data["email"] is None


class TestCreateJob:
    def test_pending_with_valid_rows(self):
        upload = ValidatedUpload(rows=[BulkRow(2, _row())], errors=[], total_rows=1)
        job = create_job(uuid.uuid4(), 2, upload)
        assert job.status == JOB_PENDING
        assert job.valid_rows == 1
        assert job.completed_at is None

    def test_failed_when_nothing_valid(self):
        upload = ValidatedUpload(rows=[], errors=[{"row": 2, "field": "segment", "error": "x"}], total_rows=1)
        job = create_job(uuid.uuid4(), 2, upload)
        assert job.status == JOB_FAILED
        assert job.validation_errors == upload.errors
        assert job.completed_at is not None


class TestZip:
    def test_safe_filename(self):
        assert safe_filename("Joe's Lawn & Garden!") == "Joe_s_Lawn___Garden_"
        assert safe_filename(None) == "pitch"
        assert len(safe_filename("x" * 80)) == 50

    def test_build_pitch_zip(self):
        pitch_id = uuid.uuid4()
        pitch = Pitch(id=pitch_id, business_name="Acme Co", html="<html>hi</html>")
        archive = zipfile.ZipFile(io.BytesIO(build_pitch_zip([pitch])))
        name = f"Acme_Co_{pitch_id}.html"
        assert archive.namelist() == [name]
        assert archive.read(name) == b"<html>hi</html>"


async def _pending_job(db_session: AsyncSession, user_id, rows: list[BulkRow], level: int = 2) -> BulkJob:
    upload = ValidatedUpload(rows=rows, total_rows=len(rows))
    job = create_job(user_id, level, upload)
    db_session.add(job)
    await db_session.commit()
    return job


class TestProcessBulkJob:
    @pytest.mark.asyncio
    async def test_all_rows_succeed(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        rows = [BulkRow(2, _row()), BulkRow(3, _row(businessName="Sunrise Bakery", segment="Bakery"))]
        job = await _pending_job(db_session, user.id, rows, level=1)

        async with session_factory() as worker_db:
            result = await process_bulk_job(worker_db, job.id, rows)

        assert result.status == JOB_COMPLETED
        assert result.success_count == 2
        assert result.processed_rows == 2

        async with session_factory() as check:
            pitches = (await check.execute(select(Pitch).where(Pitch.bulk_job_id == job.id))).scalars().all()
            assert {p.business_name for p in pitches} == {"Joe's Lawn Care", "Sunrise Bakery"}
            assert all(p.source == "bulk" and p.pitch_level == 1 for p in pitches)
            assert sorted(result.pitch_ids) == sorted(str(p.id) for p in pitches)

            usage = await get_usage(check, user.id)
            assert usage.pitches_generated == 2
            assert usage.bulk_uploads_this_month == 1

    @pytest.mark.asyncio
    async def test_one_row_failure_does_not_abort_batch(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        rows = [BulkRow(2, _row()), BulkRow(3, _row(businessName="Broken")), BulkRow(4, _row())]
        job = await _pending_job(db_session, user.id, rows)

        async def generate(data):
            if data["business_name"] == "Broken":
                raise RuntimeError("renderer exploded")
            return uuid.uuid4()

        async with session_factory() as worker_db:
            result = await process_bulk_job(worker_db, job.id, rows, generate)

        assert result.status == JOB_COMPLETED
        assert result.success_count == 2
        assert result.failed_count == 1
        assert result.errors == [{"row": 3, "error": "renderer exploded"}]
        assert len(result.pitch_ids) == 2

    @pytest.mark.asyncio
    async def test_every_row_failing_marks_job_failed(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        rows = [BulkRow(2, _row())]
        job = await _pending_job(db_session, user.id, rows)

        async def generate(data):
            raise ValueError()

        async with session_factory() as worker_db:
            result = await process_bulk_job(worker_db, job.id, rows, generate)

        assert result.status == JOB_FAILED
        assert result.errors == [{"row": 2, "error": "ValueError"}]
        async with session_factory() as check:
            assert (await get_usage(check, user.id)).pitches_generated == 0

    @pytest.mark.asyncio
    async def test_progress_is_visible_after_every_row(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        rows = [BulkRow(n, _row(businessName=f"Shop {n}")) for n in (2, 3, 4)]
        job = await _pending_job(db_session, user.id, rows)
        seen: list[tuple[str, int, int]] = []

        async def generate(data):
            async with session_factory() as observer:
                snapshot = await observer.get(BulkJob, job.id)
                seen.append((snapshot.status, snapshot.processed_rows, snapshot.success_count))
            return uuid.uuid4()

        async with session_factory() as worker_db:
            result = await process_bulk_job(worker_db, job.id, rows, generate)

        assert seen == [(JOB_PROCESSING, 0, 0), (JOB_PROCESSING, 1, 1), (JOB_PROCESSING, 2, 2)]
        assert result.processed_rows == 3
        assert len(result.pitch_ids) == 3

    @pytest.mark.asyncio
    async def test_missing_job_returns_none(self, session_factory):
        async with session_factory() as worker_db:
            assert await process_bulk_job(worker_db, uuid.uuid4(), []) is None


class TestRecoverInterruptedJobs:
    @pytest.mark.asyncio
    async def test_fails_unfinished_jobs_and_credits_successes(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        running = BulkJob(
            user_id=user.id, status=JOB_PROCESSING, valid_rows=3, processed_rows=2, success_count=2,
            pitch_ids=[], errors=[], validation_errors=[],
        )
        done = BulkJob(
            user_id=user.id, status=JOB_COMPLETED, valid_rows=1, processed_rows=1, success_count=1,
            pitch_ids=[], errors=[], validation_errors=[],
        )
        db_session.add_all([running, done])
        await db_session.commit()

        async with session_factory() as db:
            assert await recover_interrupted_jobs(db, stale_before=utcnow() + timedelta(seconds=1)) == 1

        async with session_factory() as check:
            recovered = await check.get(BulkJob, running.id)
            assert recovered.status == JOB_FAILED
            assert recovered.errors[-1] == {"row": 0, "error": INTERRUPTED_ERROR}
            assert (await check.get(BulkJob, done.id)).status == JOB_COMPLETED
            assert (await get_usage(check, user.id)).pitches_generated == 2

    @pytest.mark.asyncio
    async def test_recently_updated_jobs_are_left_alone(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        running = BulkJob(
            user_id=user.id, status=JOB_PROCESSING, valid_rows=3, processed_rows=1, success_count=1,
            pitch_ids=[], errors=[], validation_errors=[], worker_id="other-process",
        )
        db_session.add(running)
        await db_session.commit()

        async with session_factory() as db:
            assert await recover_interrupted_jobs(db, stale_before=utcnow() - timedelta(minutes=15)) == 0

        async with session_factory() as check:
            assert (await check.get(BulkJob, running.id)).status == JOB_PROCESSING
            assert (await get_usage(check, user.id)).pitches_generated == 0

    @pytest.mark.asyncio
    async def test_own_jobs_are_never_recovered(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        mine = BulkJob(
            user_id=user.id, status=JOB_PROCESSING, valid_rows=1,
            pitch_ids=[], errors=[], validation_errors=[], worker_id="this-process",
        )
        db_session.add(mine)
        await db_session.commit()

        async with session_factory() as db:
            recovered = await recover_interrupted_jobs(
                db, stale_before=utcnow() + timedelta(seconds=1), worker_id="this-process"
            )

        assert recovered == 0

    @pytest.mark.asyncio
    async def test_live_job_survives_recovery_from_another_process(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        rows = [BulkRow(n, _row(businessName=f"Shop {n}")) for n in (2, 3, 4)]
        job = await _pending_job(db_session, user.id, rows)
        recovered: list[int] = []

        async def generate(data):
            if data["business_name"] == "Shop 3":
                async with session_factory() as other:
                    recovered.append(
                        await recover_interrupted_jobs(other, stale_before=utcnow() - timedelta(minutes=15))
                    )
            return uuid.uuid4()

        async with session_factory() as worker_db:
            result = await process_bulk_job(worker_db, job.id, rows, generate, worker_id="live-worker")

        assert recovered == [0]
        assert result.status == JOB_COMPLETED
        assert result.worker_id == "live-worker"
        assert result.errors == []
        async with session_factory() as check:
            assert (await get_usage(check, user.id)).pitches_generated == 3

    @pytest.mark.asyncio
    async def test_recovered_job_is_not_finalized_again(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        rows = [BulkRow(n, _row(businessName=f"Shop {n}")) for n in (2, 3, 4)]
        job = await _pending_job(db_session, user.id, rows)
        calls: list[str] = []

        async def generate(data):
            calls.append(data["business_name"])
            if len(calls) == 2:
                async with session_factory() as other:
                    await recover_interrupted_jobs(other, stale_before=utcnow() + timedelta(seconds=1))
            return uuid.uuid4()

        async with session_factory() as worker_db:
            result = await process_bulk_job(worker_db, job.id, rows, generate)

        assert calls == ["Shop 2", "Shop 3"]
        assert result.status == JOB_FAILED
        assert result.processed_rows == 1
        assert result.success_count == 1
        assert result.errors == [{"row": 0, "error": INTERRUPTED_ERROR}]
        async with session_factory() as check:
            usage = await get_usage(check, user.id)
            assert usage.pitches_generated == 1
            assert usage.bulk_uploads_this_month == 0

    @pytest.mark.asyncio
    async def test_completed_job_cannot_be_claimed_again(self, db_session: AsyncSession, session_factory):
        user = await create_user(db_session)
        rows = [BulkRow(2, _row())]
        job = await _pending_job(db_session, user.id, rows)

        async with session_factory() as worker_db:
            await process_bulk_job(worker_db, job.id, rows, _fresh_pitch_id)
        async with session_factory() as worker_db:
            again = await process_bulk_job(worker_db, job.id, rows, _fresh_pitch_id)

        assert again.status == JOB_COMPLETED
        async with session_factory() as check:
            assert (await get_usage(check, user.id)).bulk_uploads_this_month == 1


async def _fresh_pitch_id(data) -> uuid.UUID:
    return uuid.uuid4()
