"""Pydantic schemas for tenant operations."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TenantCreate(BaseModel):
    """A company using the ledger; ``crm_location_id`` routes CRM webhooks to it."""

    name: str = Field(..., min_length=1, max_length=255)
    crm_location_id: str | None = Field(default=None, max_length=128)
    fallback_commission_rate: float | None = Field(default=None, ge=0, le=1)

    @field_validator("crm_location_id")
    @classmethod
    def _blank_location_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class TenantRead(BaseModel):
    id: str
    name: str
    crm_location_id: str | None
    fallback_commission_rate: float | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
