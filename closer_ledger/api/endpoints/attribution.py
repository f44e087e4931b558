"""Inclusion-flag maintenance endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from closer_ledger.api.dependencies import get_attribution_resolver, get_tenant_context
from closer_ledger.core.tenant import TenantContext
from closer_ledger.schemas.team import AttributionSummaryRead
from closer_ledger.services.attribution import AttributionResolver

router = APIRouter(prefix="/tenants/{tenant_id}/attribution", tags=["attribution"])


@router.post("/recalculate", response_model=AttributionSummaryRead)
def recalculate_attribution(
    tenant: TenantContext = Depends(get_tenant_context),
    resolver: AttributionResolver = Depends(get_attribution_resolver),
) -> AttributionSummaryRead:
    """Recompute inclusion flags for every contact of the tenant."""

    summary = resolver.recalculate_tenant(tenant)
    return AttributionSummaryRead(
        contacts=summary.contacts,
        appointments=summary.appointments,
        errors=summary.errors,
    )
