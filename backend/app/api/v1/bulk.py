"""Bulk upload API router: CSV template, upload, job status and ZIP download."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import GateContext, get_bulk_worker, get_current_user, get_db, get_gate_context
from app.billing.plans import UsageType, get_limit, is_within_limits
from app.errors import AppError
from app.models.bulk_job import JOB_COMPLETED
from app.models.user import User
from app.schemas.bulk import BulkJobResponse, BulkUploadAccepted, BulkUploadRequest
from app.schemas.common import ApiResponse, Page, ok
from app.services.bulk_jobs import (
    CsvFormatError,
    build_pitch_zip,
    create_job,
    csv_template,
    get_owned_job,
    list_jobs,
    load_job_pitches,
    parse_csv,
    validate_records,
)
from app.services.bulk_worker import BulkJobWorker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bulk", tags=["bulk"])


@router.get("/template")
async def download_template() -> Response:
    """CSV header plus one example row."""
    return Response(
        content=csv_template(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="bulk_template.csv"'},
    )


@router.post("/upload", status_code=status.HTTP_202_ACCEPTED)
async def upload(
    body: BulkUploadRequest,
    db: AsyncSession = Depends(get_db),
    gate: GateContext = Depends(get_gate_context),
    worker: BulkJobWorker = Depends(get_bulk_worker),
) -> JSONResponse:
    """Validate a CSV upload and start a bulk job for its valid rows."""
    limit = get_limit(gate.plan_name, UsageType.BULK_UPLOAD_ROWS)
    if limit == 0:
        raise AppError(
            status.HTTP_403_FORBIDDEN,
            "Bulk upload not available",
            message="Bulk upload is available on the Growth plan and above.",
            current_plan=gate.plan_name,
        )

    if not body.csv_data or not body.csv_data.strip():
        raise AppError(status.HTTP_400_BAD_REQUEST, "No CSV data provided")

    try:
        records = parse_csv(body.csv_data)
    except CsvFormatError as e:
        raise AppError(status.HTTP_400_BAD_REQUEST, "Invalid CSV format", message=str(e)) from e

    if not records:
        raise AppError(status.HTTP_400_BAD_REQUEST, "CSV file is empty")

    if not is_within_limits(gate.plan_name, UsageType.BULK_UPLOAD_ROWS, len(records)):
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "Row limit exceeded",
            message=f"Your plan allows up to {limit} rows per upload.",
            limit=limit,
            submitted=len(records),
        )

    validated = validate_records(records)
    job = create_job(gate.user.id, body.pitch_level, validated)
    db.add(job)
    await db.commit()

    if not validated.rows:
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "All rows failed validation",
            job_id=str(job.id),
            errors=validated.errors,
        )

    worker.submit(job.id, validated.rows)
    logger.info("Bulk job %s accepted: %d/%d valid rows", job.id, len(validated.rows), validated.total_rows)

    accepted = BulkUploadAccepted(
        job_id=job.id,
        total_rows=validated.total_rows,
        valid_rows=len(validated.rows),
        validation_errors=validated.errors,
    )
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={"success": True, "message": "Bulk upload started", "data": accepted.model_dump(mode="json")},
    )


@router.get("/jobs", response_model=ApiResponse[Page[BulkJobResponse]])
async def get_jobs(
    limit: int = Query(20, ge=1, le=50),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[Page[BulkJobResponse]]:
    items, total = await list_jobs(db, current_user.id, limit, offset)
    return ok(
        Page(
            items=[BulkJobResponse.model_validate(j) for j in items],
            total=total,
            limit=limit,
            offset=offset,
        )
    )


@router.get("/jobs/{job_id}", response_model=ApiResponse[BulkJobResponse])
async def get_job(
    job_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[BulkJobResponse]:
    job = await get_owned_job(db, job_id, current_user.id)
    return ok(BulkJobResponse.model_validate(job))


@router.get("/jobs/{job_id}/download")
async def download_job(
    job_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    """ZIP of every pitch a completed job produced."""
    job = await get_owned_job(db, job_id, current_user.id)
    pitches = await load_job_pitches(db, job) if job.status == JOB_COMPLETED else []
    if not pitches:
        raise AppError(status.HTTP_400_BAD_REQUEST, "No pitches available for download")

    return Response(
        content=build_pitch_zip(pitches),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="bulk_{job.id}.zip"'},
    )
