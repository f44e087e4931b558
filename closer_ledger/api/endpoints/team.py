"""Closer and commission role endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from closer_ledger.api.dependencies import get_team_service
from closer_ledger.api.errors import map_service_error
from closer_ledger.schemas.team import CloserCreate, CloserRead, CommissionRoleCreate, CommissionRoleRead
from closer_ledger.services.exceptions import ServiceError
from closer_ledger.services.team_service import TeamService

router = APIRouter(prefix="/tenants/{tenant_id}", tags=["team"])


@router.post("/commission-roles", response_model=CommissionRoleRead, status_code=status.HTTP_201_CREATED)
def create_commission_role(
    payload: CommissionRoleCreate,
    service: TeamService = Depends(get_team_service),
) -> CommissionRoleRead:
    try:
        return service.create_role(payload)
    except ServiceError as exc:
        raise map_service_error(exc) from exc


@router.get("/commission-roles", response_model=list[CommissionRoleRead])
def list_commission_roles(service: TeamService = Depends(get_team_service)) -> list[CommissionRoleRead]:
    return service.list_roles()


@router.post("/closers", response_model=CloserRead, status_code=status.HTTP_201_CREATED)
def create_closer(
    payload: CloserCreate,
    service: TeamService = Depends(get_team_service),
) -> CloserRead:
    """Register a closer so payments and CRM events can be attributed to them."""

    try:
        return service.create_closer(payload)
    except ServiceError as exc:
        raise map_service_error(exc) from exc


@router.get("/closers", response_model=list[CloserRead])
def list_closers(
    offset: int = 0,
    limit: int = 100,
    service: TeamService = Depends(get_team_service),
) -> list[CloserRead]:
    return service.list_closers(offset=offset, limit=limit)
