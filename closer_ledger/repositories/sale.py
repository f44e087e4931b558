"""Repository for sale entities."""
from __future__ import annotations

from sqlalchemy import select

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Sale

from .base import TenantScopedRepository


class SaleRepository(TenantScopedRepository[Sale]):
    """Sale lookups keyed by the processor payment id."""

    model = Sale

    def get_by_external_id(self, external_id: str) -> Sale | None:
        """Global lookup: the processor payment id is unique across tenants."""

        statement = select(self.model).where(self.model.external_id == external_id)
        return self.session.scalar(statement)

    def list_filtered(
        self,
        tenant: TenantContext,
        matched: bool | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[Sale]:
        statement = self._tenant_query(tenant)
        if matched is True:
            statement = statement.where(self.model.appointment_id.is_not(None))
        elif matched is False:
            statement = statement.where(self.model.appointment_id.is_(None))
        statement = statement.order_by(self.model.created_at.desc()).offset(offset).limit(limit)
        return list(self.session.scalars(statement).all())
