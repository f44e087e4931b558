"""Repository for contact entities."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, or_, select

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Contact

from .base import TenantScopedRepository


class ContactRepository(TenantScopedRepository[Contact]):
    """Contact lookups ordered oldest-first so the original record wins."""

    model = Contact

    def get_by_external_id(self, tenant: TenantContext, external_id: str) -> Contact | None:
        return self.find_one(tenant, self.model.external_id == external_id)

    def get_by_email(self, tenant: TenantContext, email: str) -> Contact | None:
        return self.find_one(tenant, func.lower(self.model.email) == email.strip().lower())

    def get_by_phone(self, tenant: TenantContext, phone: str) -> Contact | None:
        return self.find_one(tenant, self.model.phone == phone)

    def ids_matching(
        self,
        tenant: TenantContext,
        email: str | None = None,
        phone: str | None = None,
    ) -> set[str]:
        """Return ids of every contact sharing the email or the normalized phone."""

        clauses = []
        if email:
            clauses.append(func.lower(self.model.email) == email.strip().lower())
        if phone:
            clauses.append(self.model.phone == phone)
        if not clauses:
            return set()
        statement = (
            select(self.model.id)
            .where(self.model.tenant_id == tenant.tenant_id)
            .where(or_(*clauses))
        )
        return set(self.session.scalars(statement).all())

    def search_by_name_tokens(self, tenant: TenantContext, tokens: Iterable[str], limit: int = 50) -> list[Contact]:
        clauses = [func.lower(self.model.name).contains(token.lower()) for token in tokens if token]
        if not clauses:
            return []
        statement = self._tenant_query(tenant).where(or_(*clauses)).limit(limit)
        return list(self.session.scalars(statement).all())

    def ids_for_tenant(self, tenant: TenantContext) -> list[str]:
        statement = select(self.model.id).where(self.model.tenant_id == tenant.tenant_id)
        return list(self.session.scalars(statement).all())
