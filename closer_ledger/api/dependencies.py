"""FastAPI dependency utilities for tenant-scoped access."""
from __future__ import annotations

import json
from typing import Any
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Path, Request, status
from sqlalchemy.orm import Session

from closer_ledger.core.database import get_db_session
from closer_ledger.core.tenant import TenantContext, TenantNotFoundError, load_tenant_context
from closer_ledger.services.attribution import AttributionResolver
from closer_ledger.services.commission_service import CommissionService
from closer_ledger.services.crm_service import CrmWebhookService
from closer_ledger.services.event_ledger import EventLedger
from closer_ledger.services.manual_match_service import ManualMatchService
from closer_ledger.services.payment_service import PaymentWebhookService
from closer_ledger.services.team_service import TeamService, TenantService


def tenant_id_path(tenant_id: UUID = Path(..., description="Tenant identifier")) -> str:
    """Validate tenant identifier extracted from path."""

    return str(tenant_id)


def get_tenant_context(
    tenant_id: str = Depends(tenant_id_path),
    session: Session = Depends(get_db_session),
) -> TenantContext:
    """Resolve a tenant context for the request."""

    try:
        return load_tenant_context(session, tenant_id)
    except TenantNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


async def json_body(request: Request) -> Any:
    """Parse the raw body ourselves so malformed JSON is a 400, not a 422."""

    raw = await request.body()
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body") from exc


def admin_user_id(x_admin_user_id: str | None = Header(default=None, alias="X-Admin-User-Id")) -> str | None:
    """Identity of the admin performing a manual action, recorded for audit."""

    return x_admin_user_id


def get_tenant_service(session: Session = Depends(get_db_session)) -> TenantService:
    """Provide tenant service with database session."""

    return TenantService(session)


def get_team_service(
    tenant: TenantContext = Depends(get_tenant_context),
    session: Session = Depends(get_db_session),
) -> TeamService:
    return TeamService(session, tenant)


def get_payment_service(session: Session = Depends(get_db_session)) -> PaymentWebhookService:
    """Payment webhooks resolve their tenant from the payload."""

    return PaymentWebhookService(session)


def get_crm_service(session: Session = Depends(get_db_session)) -> CrmWebhookService:
    return CrmWebhookService(session)


def get_manual_match_service(
    tenant: TenantContext = Depends(get_tenant_context),
    session: Session = Depends(get_db_session),
) -> ManualMatchService:
    """Provide manual match service bound to tenant context."""

    return ManualMatchService(session, tenant)


def get_commission_service(
    tenant: TenantContext = Depends(get_tenant_context),
    session: Session = Depends(get_db_session),
) -> CommissionService:
    """Provide commission service bound to tenant context."""

    return CommissionService(session, tenant)


def get_event_ledger(session: Session = Depends(get_db_session)) -> EventLedger:
    return EventLedger(session)


def get_attribution_resolver(session: Session = Depends(get_db_session)) -> AttributionResolver:
    return AttributionResolver(session)
