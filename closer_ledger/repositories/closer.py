"""Repositories for closers and their commission roles."""
from __future__ import annotations

from typing import Any

from sqlalchemy import func, select

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Closer, CommissionRole

from .base import TenantScopedRepository


class CloserRepository(TenantScopedRepository[Closer]):
    """Closer lookups by email and CRM identity."""

    model = Closer

    def get_by_email(self, tenant: TenantContext, email: str) -> Closer | None:
        return self.find_one(tenant, func.lower(self.model.email) == email.strip().lower())

    def get_by_crm_user_id(self, tenant: TenantContext, crm_user_id: str) -> Closer | None:
        return self.find_one(tenant, self.model.crm_user_id == crm_user_id)

    def tenant_ids_for_email(self, email: str) -> list[str]:
        """Return every tenant owning a closer with this email, across tenants."""

        statement = (
            select(self.model.tenant_id)
            .where(func.lower(self.model.email) == email.strip().lower())
            .distinct()
        )
        return list(self.session.scalars(statement).all())

    def _ordering(self) -> tuple[Any, ...]:
        return (self.model.email.asc(),)


class CommissionRoleRepository(TenantScopedRepository[CommissionRole]):
    model = CommissionRole

    def _ordering(self) -> tuple[Any, ...]:
        return (self.model.name.asc(),)
