"""Webhook audit ledger endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from closer_ledger.api.dependencies import get_event_ledger, get_tenant_context
from closer_ledger.core.tenant import TenantContext
from closer_ledger.schemas.webhook_event import WebhookEventRead
from closer_ledger.services.event_ledger import EventLedger

router = APIRouter(prefix="/tenants/{tenant_id}/webhook-events", tags=["webhook-events"])


@router.get("", response_model=list[WebhookEventRead])
def list_webhook_events(
    failed_only: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    tenant: TenantContext = Depends(get_tenant_context),
    ledger: EventLedger = Depends(get_event_ledger),
) -> list[WebhookEventRead]:
    """Newest deliveries first; ``failed_only`` narrows to those with an error."""

    return ledger.list_events(tenant, failed_only=failed_only, offset=offset, limit=limit)
