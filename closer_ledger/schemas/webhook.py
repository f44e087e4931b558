"""Schemas for inbound payment and CRM webhooks."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PaymentWebhookPayload(BaseModel):
    """Payment processor notification.

    Field types stay loose; the payment service normalizes and validates them so
    malformed deliveries are answered with 400 and still reach the audit ledger.
    """

    processor: Any = None
    payment_id: Any = Field(default=None, alias="paymentId")
    amount: Any = None
    currency: Any = None
    customer_email: Any = Field(default=None, alias="customerEmail")
    customer_name: Any = Field(default=None, alias="customerName")
    closer_email: Any = Field(default=None, alias="closerEmail")
    appointment_id: Any = Field(default=None, alias="appointmentId")
    paid_at: Any = Field(default=None, alias="paidAt")
    contact_name: Any = Field(default=None, alias="contactName")
    contact_phone: Any = Field(default=None, alias="contactPhone")
    status: Any = None
    event_type: Any = Field(default=None, alias="eventType")
    company_id: Any = Field(default=None, alias="companyId")
    metadata: dict[str, Any] | None = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class PaymentWebhookResponse(BaseModel):
    """Outcome of a payment webhook delivery."""

    status: str
    matched: bool = False
    sale_id: str | None = None
    appointment_id: str | None = None
    unmatched_payment_id: str | None = None
    commission_id: str | None = None
    match_strategy: str | None = None
    match_confidence: float | None = None
    error: str | None = None


class CrmWebhookResponse(BaseModel):
    """Acknowledgement returned to the CRM."""

    status: str
    event_id: str
    appointment_id: str | None = None
    action: str | None = None
    detail: str | None = None
