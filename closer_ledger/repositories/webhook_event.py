"""Repository for the webhook audit ledger."""
from __future__ import annotations

from typing import Any

from sqlalchemy import select

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import WebhookEvent

from .base import Repository


class WebhookEventRepository(Repository[WebhookEvent]):
    """Ledger rows are not tenant-scoped until the tenant is resolved."""

    model = WebhookEvent

    def list_for_tenant(
        self,
        tenant: TenantContext,
        failed_only: bool = False,
        offset: int = 0,
        limit: int = 100,
    ) -> list[WebhookEvent]:
        statement = select(self.model).where(self.model.tenant_id == tenant.tenant_id)
        if failed_only:
            statement = statement.where(self.model.error.is_not(None))
        statement = statement.order_by(*self._ordering()).offset(offset).limit(limit)
        return list(self.session.scalars(statement).all())

    def _ordering(self) -> tuple[Any, ...]:
        return (self.model.created_at.desc(),)
