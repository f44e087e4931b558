"""Schemas for the unmatched payment review queue and manual matching."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from closer_ledger.db.models import SaleStatus, UnmatchedPaymentStatus


class SaleRead(BaseModel):
    id: str
    tenant_id: str
    external_id: str
    processor: str
    amount: float
    currency: str
    status: SaleStatus
    customer_email: str | None
    customer_name: str | None
    paid_at: datetime | None
    contact_id: str | None
    appointment_id: str | None
    rep_id: str | None
    matched_by: str | None
    match_confidence: float | None
    manually_matched: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnmatchedPaymentRead(BaseModel):
    id: str
    tenant_id: str
    sale_id: str
    status: UnmatchedPaymentStatus
    suggested_matches: list[dict[str, Any]] | None
    reviewed_at: datetime | None
    reviewed_by_user_id: str | None
    created_at: datetime
    sale: SaleRead

    model_config = ConfigDict(from_attributes=True)


class ManualMatchRequest(BaseModel):
    appointment_id: str = Field(alias="appointmentId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class BulkMatchItem(BaseModel):
    """One admin pairing; ``paymentId`` is a queue entry id or the processor payment id."""

    payment_id: str = Field(alias="paymentId", min_length=1)
    appointment_id: str = Field(alias="appointmentId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class BulkMatchRequest(BaseModel):
    matches: list[BulkMatchItem] = Field(min_length=1)


class BulkMatchItemResult(BaseModel):
    payment_id: str
    appointment_id: str
    success: bool
    sale_id: str | None = None
    commission_id: str | None = None
    error: str | None = None


class BulkMatchResponse(BaseModel):
    """Per-item report of a bulk manual match."""

    results: list[BulkMatchItemResult]
    total: int
    successful: int
    failed: int


class RematchResponse(BaseModel):
    examined: int
    matched: int
    failed: int
    sale_ids: list[str]
