"""Tenant-related REST endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from closer_ledger.api.dependencies import get_tenant_service
from closer_ledger.api.errors import map_service_error
from closer_ledger.schemas.tenant import TenantCreate, TenantRead
from closer_ledger.services.exceptions import ServiceError
from closer_ledger.services.team_service import TenantService

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.post("", response_model=TenantRead, status_code=status.HTTP_201_CREATED)
def create_tenant(
    payload: TenantCreate,
    service: TenantService = Depends(get_tenant_service),
) -> TenantRead:
    """Create a new tenant."""

    try:
        return service.create(payload)
    except ServiceError as exc:
        raise map_service_error(exc) from exc


@router.get("", response_model=list[TenantRead])
def list_tenants(
    service: TenantService = Depends(get_tenant_service),
) -> list[TenantRead]:
    """List available tenants."""

    return service.list()


@router.get("/{tenant_id}", response_model=TenantRead)
def get_tenant(
    tenant_id: str,
    service: TenantService = Depends(get_tenant_service),
) -> TenantRead:
    try:
        return service.get(tenant_id)
    except ServiceError as exc:
        raise map_service_error(exc) from exc
