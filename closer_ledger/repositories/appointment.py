"""Appointment repository handling tenant-scoped candidate queries."""
from __future__ import annotations

from collections.abc import Collection
from datetime import datetime

from sqlalchemy import Select

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Appointment

from .base import TenantScopedRepository


class AppointmentRepository(TenantScopedRepository[Appointment]):
    """Appointment queries used by matching and attribution."""

    model = Appointment

    def get_by_external_id(self, tenant: TenantContext, external_id: str) -> Appointment | None:
        return self.find_one(tenant, self.model.external_id == external_id)

    def list_recent_for_contacts(
        self,
        tenant: TenantContext,
        contact_ids: Collection[str],
        limit: int = 10,
        since: datetime | None = None,
    ) -> list[Appointment]:
        """Return appointments for the contacts, most recently scheduled first."""

        if not contact_ids:
            return []
        statement: Select[tuple[Appointment]] = (
            self._tenant_query(tenant)
            .where(self.model.contact_id.in_(list(contact_ids)))
        )
        if since is not None:
            statement = statement.where(self.model.scheduled_at >= since)
        statement = statement.order_by(
            self.model.scheduled_at.desc(),
            self.model.created_at.desc(),
        ).limit(limit)
        return list(self.session.scalars(statement).all())

    def list_for_contact(self, tenant: TenantContext, contact_id: str) -> list[Appointment]:
        statement = (
            self._tenant_query(tenant)
            .where(self.model.contact_id == contact_id)
            .order_by(self.model.scheduled_at.asc(), self.model.created_at.asc())
        )
        return list(self.session.scalars(statement).all())
