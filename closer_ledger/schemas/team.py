"""Schemas for closers and commission roles."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class CommissionRoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    default_rate: float = Field(ge=0, le=1)


class CommissionRoleRead(BaseModel):
    id: str
    tenant_id: str
    name: str
    default_rate: float
    created_at: datetime

    class Config:
        from_attributes = True


class CloserCreate(BaseModel):
    """Payload registering a closer on a tenant's team."""

    email: str = Field(..., min_length=3, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    crm_user_id: str | None = Field(default=None, max_length=128)
    custom_commission_rate: float | None = Field(default=None, ge=0, le=1)
    commission_role_id: str | None = None

    @field_validator("email")
    @classmethod
    def email_lower(cls, value: str) -> str:
        return value.strip().lower()


class CloserRead(BaseModel):
    id: str
    tenant_id: str
    email: str
    name: str | None
    crm_user_id: str | None
    custom_commission_rate: float | None
    commission_role_id: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class AttributionSummaryRead(BaseModel):
    """Result of recomputing inclusion flags for a tenant."""

    contacts: int
    appointments: int
    errors: int
