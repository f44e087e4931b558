"""Commission administration endpoints."""
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from closer_ledger.api.dependencies import admin_user_id, get_commission_service
from closer_ledger.api.errors import map_service_error
from closer_ledger.db.models import ReleaseStatus
from closer_ledger.schemas.commission import (
    CommissionOverrideRequest,
    CommissionRead,
    CommissionReleaseRequest,
)
from closer_ledger.services.commission_service import CommissionService
from closer_ledger.services.exceptions import ServiceError

router = APIRouter(prefix="/tenants/{tenant_id}/commissions", tags=["commissions"])


@router.get("", response_model=list[CommissionRead])
def list_commissions(
    release_status: ReleaseStatus | None = Query(default=None),
    rep_id: str | None = Query(default=None),
    clawback_only: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    service: CommissionService = Depends(get_commission_service),
) -> list[CommissionRead]:
    return service.list_commissions(
        release_status=release_status,
        rep_id=rep_id,
        clawback_only=clawback_only,
        offset=offset,
        limit=limit,
    )


@router.get("/{commission_id}", response_model=CommissionRead)
def get_commission(
    commission_id: str,
    service: CommissionService = Depends(get_commission_service),
) -> CommissionRead:
    try:
        return service.get(commission_id)
    except ServiceError as exc:
        raise map_service_error(exc) from exc


@router.post("/{commission_id}/release", response_model=CommissionRead)
def release_commission(
    commission_id: str,
    payload: CommissionReleaseRequest | None = None,
    service: CommissionService = Depends(get_commission_service),
) -> CommissionRead:
    """Release the remaining balance, or a partial amount."""

    amount = Decimal(str(payload.amount)) if payload and payload.amount is not None else None
    try:
        return service.release(commission_id, amount)
    except ServiceError as exc:
        raise map_service_error(exc) from exc


@router.post("/{commission_id}/pay", response_model=CommissionRead)
def pay_commission(
    commission_id: str,
    service: CommissionService = Depends(get_commission_service),
) -> CommissionRead:
    try:
        return service.mark_paid(commission_id)
    except ServiceError as exc:
        raise map_service_error(exc) from exc


@router.post("/{commission_id}/override", response_model=CommissionRead)
def override_commission(
    commission_id: str,
    payload: CommissionOverrideRequest,
    user_id: str | None = Depends(admin_user_id),
    service: CommissionService = Depends(get_commission_service),
) -> CommissionRead:
    """Replace the payable amount, recording who did it and why."""

    if payload.user_id is None and user_id is not None:
        payload = payload.model_copy(update={"user_id": user_id})
    try:
        return service.override(commission_id, payload)
    except ServiceError as exc:
        raise map_service_error(exc) from exc
