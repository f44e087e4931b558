"""Pydantic schemas exposed by the API layer."""
from .tenant import TenantCreate, TenantRead
from .team import (
    AttributionSummaryRead,
    CloserCreate,
    CloserRead,
    CommissionRoleCreate,
    CommissionRoleRead,
)
from .commission import CommissionOverrideRequest, CommissionRead, CommissionReleaseRequest
from .unmatched_payment import (
    BulkMatchItem,
    BulkMatchItemResult,
    BulkMatchRequest,
    BulkMatchResponse,
    ManualMatchRequest,
    RematchResponse,
    SaleRead,
    UnmatchedPaymentRead,
)
from .webhook import CrmWebhookResponse, PaymentWebhookPayload, PaymentWebhookResponse
from .webhook_event import WebhookEventRead

__all__ = [
    "TenantCreate",
    "TenantRead",
    "AttributionSummaryRead",
    "CloserCreate",
    "CloserRead",
    "CommissionRoleCreate",
    "CommissionRoleRead",
    "CommissionOverrideRequest",
    "CommissionRead",
    "CommissionReleaseRequest",
    "BulkMatchItem",
    "BulkMatchItemResult",
    "BulkMatchRequest",
    "BulkMatchResponse",
    "ManualMatchRequest",
    "RematchResponse",
    "SaleRead",
    "UnmatchedPaymentRead",
    "CrmWebhookResponse",
    "PaymentWebhookPayload",
    "PaymentWebhookResponse",
    "WebhookEventRead",
]
