"""Repository for tenant entities."""
from __future__ import annotations

from sqlalchemy import select

from closer_ledger.db.models import Tenant

from .base import Repository


class TenantRepository(Repository[Tenant]):
    """Tenants are the only unscoped aggregate; they are looked up by CRM location."""

    model = Tenant

    def get_by_location_id(self, location_id: str) -> Tenant | None:
        statement = select(self.model).where(self.model.crm_location_id == location_id)
        return self.session.scalar(statement)
