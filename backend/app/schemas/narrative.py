"""Pydantic v2 request/response schemas for narrative and formatter endpoints."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class NarrativeCreate(BaseModel):
    """Business data the narrative is written from.

    ``business_name`` and ``industry`` are checked in the handler so a missing
    value yields the documented 400 rather than a validation error list.
    """

    business_name: str | None = Field(None, max_length=255)
    industry: str | None = Field(None, max_length=255)
    sub_industry: str | None = Field(None, max_length=255)
    contact_name: str | None = Field(None, max_length=255)
    address: str | None = Field(None, max_length=512)
    website_url: str | None = Field(None, max_length=512)
    google_rating: float | None = Field(None, ge=0, le=5)
    num_reviews: int | None = Field(None, ge=0)
    monthly_visits: int | None = Field(None, gt=0)
    avg_transaction: float | None = Field(None, gt=0)
    repeat_rate: float | None = Field(None, gt=0, le=1)
    stated_problem: str | None = None
    review_highlights: list[str] | None = None
    products: list[str] | None = None


class RegenerateRequest(BaseModel):
    """Sections to regenerate; all sections when ``section`` and ``sections`` are empty."""

    section: str | None = None
    sections: list[str] | None = None
    feedback: str | None = Field(None, max_length=2000)

    def requested_sections(self) -> list[str] | None:
        requested = list(self.sections or [])
        if self.section:
            requested.append(self.section)
        return requested or None


class FormatRequest(BaseModel):
    formatter_type: str


class BatchFormatRequest(BaseModel):
    formatter_types: list[str] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AssetResponse(BaseModel):
    id: uuid.UUID
    narrative_id: uuid.UUID
    formatter_type: str
    content: dict[str, Any]
    html: str
    word_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssetSummary(BaseModel):
    id: uuid.UUID
    formatter_type: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NarrativeResponse(BaseModel):
    id: uuid.UUID
    business_name: str
    industry: str
    inputs: dict[str, Any]
    roi_data: dict[str, Any] | None = None
    content: dict[str, Any]
    validation: dict[str, Any] | None = None
    status: str
    version: int
    regenerated_sections: list[str]
    model: str | None = None
    input_tokens: int
    output_tokens: int
    estimated_cost: float
    assets: list[AssetSummary] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NarrativeCreated(BaseModel):
    narrative: NarrativeResponse
    from_cache: bool


class FormatterInfo(BaseModel):
    type: str
    name: str
    description: str
    estimated_time: str
    available: bool
