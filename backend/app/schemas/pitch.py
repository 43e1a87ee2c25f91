"""Pydantic v2 request/response schemas for pitch endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PitchCreate(BaseModel):
    """Prospect details for a single pitch."""

    business_name: str = Field(..., min_length=1, max_length=255)
    industry: str = Field(..., min_length=1, max_length=255)
    contact_name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=512)
    website_url: str | None = Field(None, max_length=512)
    sub_industry: str | None = Field(None, max_length=255)
    google_rating: float | None = Field(None, ge=0, le=5)
    num_reviews: int | None = Field(None, ge=0)
    custom_message: str | None = None
    monthly_visits: int | None = Field(None, gt=0)
    avg_transaction: float | None = Field(None, gt=0)
    repeat_rate: float | None = Field(None, gt=0, le=1)
    pitch_level: int = Field(2, ge=1, le=3)

    # Presentation
    hide_branding: bool = False
    primary_color: str | None = Field(None, pattern="^#[0-9a-fA-F]{6}$")
    accent_color: str | None = Field(None, pattern="^#[0-9a-fA-F]{6}$")
    logo_url: str | None = Field(None, max_length=1024)
    booking_url: str | None = Field(None, max_length=1024)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PitchSummary(BaseModel):
    """Pitch metadata without the rendered HTML."""

    id: uuid.UUID
    business_name: str
    contact_name: str
    industry: str
    sub_industry: str | None = None
    address: str | None = None
    website_url: str | None = None
    google_rating: float | None = None
    num_reviews: int | None = None
    pitch_level: int
    source: str
    bulk_job_id: uuid.UUID | None = None
    share_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PitchResponse(PitchSummary):
    html: str
    roi_data: dict | None = None
    options: dict | None = None
