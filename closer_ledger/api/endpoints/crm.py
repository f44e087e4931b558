"""CRM appointment webhook endpoint."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from closer_ledger.api.dependencies import get_crm_service, json_body
from closer_ledger.schemas.webhook import CrmWebhookResponse
from closer_ledger.services.crm_service import CrmWebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/crm", response_model=CrmWebhookResponse)
def receive_crm_event(
    response: Response,
    body: Any = Depends(json_body),
    service: CrmWebhookService = Depends(get_crm_service),
) -> CrmWebhookResponse:
    """Acknowledge every parseable delivery; failures land in the webhook ledger."""

    status_code, result = service.process(body)
    response.status_code = status_code
    return result
