"""Pydantic v2 request/response schemas for bulk upload endpoints."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BulkUploadRequest(BaseModel):
    """CSV text in the template format plus the pitch level for every row."""

    csv_data: str | None = None
    pitch_level: int = Field(1, ge=1, le=3)


class BulkUploadAccepted(BaseModel):
    job_id: uuid.UUID
    total_rows: int
    valid_rows: int
    validation_errors: list[dict[str, Any]]


class BulkJobResponse(BaseModel):
    id: uuid.UUID
    status: str
    pitch_level: int
    total_rows: int
    valid_rows: int
    processed_rows: int
    success_count: int
    failed_count: int
    pitch_ids: list[str]
    errors: list[dict[str, Any]]
    validation_errors: list[dict[str, Any]]
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
