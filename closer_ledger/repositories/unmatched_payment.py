"""Repository for the unmatched payment review queue."""
from __future__ import annotations

from typing import Any

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Sale, UnmatchedPayment, UnmatchedPaymentStatus

from .base import TenantScopedRepository


class UnmatchedPaymentRepository(TenantScopedRepository[UnmatchedPayment]):
    """Review queue queries."""

    model = UnmatchedPayment

    def list_by_status(
        self,
        tenant: TenantContext,
        status: UnmatchedPaymentStatus | None = UnmatchedPaymentStatus.PENDING,
        offset: int = 0,
        limit: int = 100,
    ) -> list[UnmatchedPayment]:
        statement = self._tenant_query(tenant)
        if status is not None:
            statement = statement.where(self.model.status == status)
        statement = statement.order_by(*self._ordering()).offset(offset).limit(limit)
        return list(self.session.scalars(statement).all())

    def get_by_sale_id(self, tenant: TenantContext, sale_id: str) -> UnmatchedPayment | None:
        return self.find_one(tenant, self.model.sale_id == sale_id)

    def get_by_sale_external_id(self, tenant: TenantContext, external_id: str) -> UnmatchedPayment | None:
        statement = (
            self._tenant_query(tenant)
            .join(Sale, Sale.id == self.model.sale_id)
            .where(Sale.external_id == external_id)
        )
        return self.session.scalar(statement)

    def _ordering(self) -> tuple[Any, ...]:
        return (self.model.created_at.desc(),)
