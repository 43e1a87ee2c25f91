"""Pydantic v2 request/response schemas for market intelligence and logos."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MarketReportCreate(BaseModel):
    """At least one of city, state or zip code is required (checked in the handler)."""

    industry: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=255)
    state: str | None = Field(None, max_length=100)
    zip_code: str | None = Field(None, max_length=20)
    company_size: str = Field("small", pattern="^(small|medium|large|national)$")
    radius: int | None = Field(None, gt=0, le=250_000)


class MarketReportResponse(BaseModel):
    id: uuid.UUID
    industry: str
    location: str
    inputs: dict[str, Any]
    report: dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LogoResult(BaseModel):
    success: bool
    domain: str
    logos: list[dict[str, str]]
    primary_logo: dict[str, str] | None = None
    errors: list[dict[str, str]] | None = None
    fetched_at: str | None = None
    from_cache: bool = False
