"""Tenant context threaded explicitly through services and repositories."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from closer_ledger.db.models import Tenant


class TenantAccessError(RuntimeError):
    """Base error for tenant access violations."""


class TenantNotFoundError(TenantAccessError):
    """Raised when a tenant cannot be located."""


class TenantMismatchError(TenantAccessError):
    """Raised when a row of one tenant reaches an operation of another."""


@dataclass(slots=True, frozen=True)
class TenantContext:
    """The company an operation runs for, with the settings it needs from the tenant row."""

    tenant_id: str
    tenant_name: str
    crm_location_id: str | None = None
    fallback_commission_rate: Decimal | None = None

    def owns(self, entity: Any) -> bool:
        tenant_id = getattr(entity, "tenant_id", None)
        return tenant_id is not None and str(tenant_id) == self.tenant_id

    def require_owned(self, entity: Any, label: str = "Entity") -> None:
        if not self.owns(entity):
            raise TenantMismatchError(
                f"{label} {getattr(entity, 'id', '?')} does not belong to tenant {self.tenant_id}"
            )


def context_for(tenant: Tenant) -> TenantContext:
    return TenantContext(
        tenant_id=str(tenant.id),
        tenant_name=tenant.name,
        crm_location_id=tenant.crm_location_id,
        fallback_commission_rate=(
            Decimal(tenant.fallback_commission_rate) if tenant.fallback_commission_rate is not None else None
        ),
    )


def load_tenant_context(session: Session, tenant_id: str) -> TenantContext:
    """Load a tenant from persistence and return a context wrapper."""

    tenant = session.get(Tenant, tenant_id)
    if tenant is None:
        raise TenantNotFoundError(f"Tenant {tenant_id} not found")
    return context_for(tenant)
