"""Repository for commission entities."""
from __future__ import annotations

from typing import Any

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Commission, ReleaseStatus

from .base import TenantScopedRepository


class CommissionRepository(TenantScopedRepository[Commission]):
    """Commission persistence helpers, newest first."""

    model = Commission

    def get_by_sale_id(self, tenant: TenantContext, sale_id: str) -> Commission | None:
        return self.find_one(tenant, self.model.sale_id == sale_id)

    def list_filtered(
        self,
        tenant: TenantContext,
        release_status: ReleaseStatus | None = None,
        rep_id: str | None = None,
        clawback_only: bool = False,
        offset: int = 0,
        limit: int = 100,
    ) -> list[Commission]:
        statement = self._tenant_query(tenant)
        if release_status is not None:
            statement = statement.where(self.model.release_status == release_status)
        if rep_id:
            statement = statement.where(self.model.rep_id == rep_id)
        if clawback_only:
            statement = statement.where(self.model.clawback_requested_at.is_not(None))
        statement = statement.order_by(*self._ordering()).offset(offset).limit(limit)
        return list(self.session.scalars(statement).all())

    def _ordering(self) -> tuple[Any, ...]:
        return (self.model.created_at.desc(),)
