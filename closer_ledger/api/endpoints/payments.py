"""Payment processor webhook endpoint."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header, Response, status

from closer_ledger.api.dependencies import get_payment_service, json_body
from closer_ledger.api.errors import map_service_error
from closer_ledger.schemas.webhook import PaymentWebhookResponse
from closer_ledger.services.exceptions import ServiceError
from closer_ledger.services.payment_service import PaymentWebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/payments", response_model=PaymentWebhookResponse)
def receive_payment(
    response: Response,
    body: Any = Depends(json_body),
    webhook_secret: str | None = Header(default=None, alias="X-Webhook-Secret"),
    service: PaymentWebhookService = Depends(get_payment_service),
) -> PaymentWebhookResponse:
    """Record a payment; 200 when matched or already seen, 202 when queued for review."""

    try:
        result = service.handle(body, webhook_secret)
    except ServiceError as exc:
        raise map_service_error(exc) from exc

    if result.status == "unmatched":
        response.status_code = status.HTTP_202_ACCEPTED
    return result
