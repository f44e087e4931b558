"""Schemas for commission administration."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from closer_ledger.db.models import ReleaseStatus


class CommissionRead(BaseModel):
    """Commission representation returned to clients."""

    id: str
    tenant_id: str
    sale_id: str
    rep_id: str
    gross_amount: float
    percentage: float
    amount: float
    total_amount: float
    payable_amount: float
    released_amount: float
    release_status: ReleaseStatus
    override_amount: float | None
    override_reason: str | None
    override_by_user_id: str | None
    released_at: datetime | None
    paid_at: datetime | None
    clawback_requested_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommissionReleaseRequest(BaseModel):
    """Release the remaining balance, or only ``amount`` of it."""

    amount: float | None = Field(default=None, gt=0)


class CommissionOverrideRequest(BaseModel):
    amount: float = Field(ge=0)
    reason: str = Field(min_length=1, max_length=500)
    user_id: str | None = Field(default=None, max_length=128)

    @field_validator("reason")
    @classmethod
    def _strip_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped
