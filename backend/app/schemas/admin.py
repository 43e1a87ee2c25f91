"""Pydantic v2 request/response schemas for admin endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AdminUserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    company_name: str | None = None
    role: str
    is_active: bool
    plan: str
    stripe_customer_id: str | None = None
    subscription_status: str | None = None
    current_period_end: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AdminUserUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    plan: str | None = None
    role: str | None = Field(None, pattern="^(user|admin)$")
    is_active: bool | None = None


class BootstrapRequest(BaseModel):
    secret_key: str | None = None
    email: str | None = None
    force: bool = False
