"""Unmatched payment review queue and manual matching endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from closer_ledger.api.dependencies import admin_user_id, get_manual_match_service
from closer_ledger.api.errors import map_service_error
from closer_ledger.db.models import UnmatchedPaymentStatus
from closer_ledger.schemas.unmatched_payment import (
    BulkMatchItemResult,
    BulkMatchRequest,
    BulkMatchResponse,
    ManualMatchRequest,
    RematchResponse,
    UnmatchedPaymentRead,
)
from closer_ledger.services.exceptions import ServiceError
from closer_ledger.services.manual_match_service import ManualMatchService

router = APIRouter(prefix="/tenants/{tenant_id}/unmatched-payments", tags=["unmatched-payments"])


@router.get("", response_model=list[UnmatchedPaymentRead])
def list_unmatched_payments(
    status: UnmatchedPaymentStatus | None = Query(default=UnmatchedPaymentStatus.PENDING),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    service: ManualMatchService = Depends(get_manual_match_service),
) -> list[UnmatchedPaymentRead]:
    """List queued payments with their suggested candidates."""

    return service.list_queue(status=status, offset=offset, limit=limit)


@router.post("/bulk-match", response_model=BulkMatchResponse)
def bulk_match(
    payload: BulkMatchRequest,
    user_id: str | None = Depends(admin_user_id),
    service: ManualMatchService = Depends(get_manual_match_service),
) -> BulkMatchResponse:
    """Apply admin pairings independently and report per item."""

    return service.bulk_match(payload, user_id)


@router.post("/rematch", response_model=RematchResponse)
def rematch(service: ManualMatchService = Depends(get_manual_match_service)) -> RematchResponse:
    """Retry the automatic cascade for every pending payment."""

    return service.rematch_pending()


@router.post("/{unmatched_id}/match", response_model=BulkMatchItemResult)
def match_payment(
    unmatched_id: str,
    payload: ManualMatchRequest,
    user_id: str | None = Depends(admin_user_id),
    service: ManualMatchService = Depends(get_manual_match_service),
) -> BulkMatchItemResult:
    try:
        return service.match_one(unmatched_id, payload.appointment_id, user_id)
    except ServiceError as exc:
        raise map_service_error(exc) from exc
