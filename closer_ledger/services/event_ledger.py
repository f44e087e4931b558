"""Audit ledger recording every inbound webhook delivery."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.base import utcnow
from closer_ledger.db.models import WebhookEvent
from closer_ledger.repositories.webhook_event import WebhookEventRepository
from closer_ledger.schemas.webhook_event import WebhookEventRead

from .exceptions import NotFoundError

logger = logging.getLogger(__name__)


class EventLedger:
    """Persist raw payloads before business logic runs.

    Every call commits on its own so an entry survives a rollback of the
    business transaction that follows it.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.events = WebhookEventRepository(session)

    def record(self, processor: str, event_type: str, payload: Any) -> str:
        if payload is not None and not isinstance(payload, dict):
            payload = {"raw": payload}
        event = WebhookEvent(processor=processor, event_type=event_type, payload=payload)
        self.events.add(event)
        self.session.commit()
        logger.info("Recorded %s webhook %s (%s)", processor, event.id, event_type)
        return event.id

    def mark_processed(self, event_id: str, tenant_id: str | None = None) -> None:
        event = self._get(event_id)
        event.processed = True
        event.processed_at = utcnow()
        event.error = None
        if tenant_id is not None:
            event.tenant_id = tenant_id
        self.session.commit()

    def mark_failed(self, event_id: str, error: str, tenant_id: str | None = None) -> None:
        event = self._get(event_id)
        event.processed = False
        event.processed_at = utcnow()
        event.error = error
        if tenant_id is not None:
            event.tenant_id = tenant_id
        self.session.commit()
        logger.warning("Webhook %s failed: %s", event_id, error)

    def list_events(
        self,
        tenant: TenantContext,
        failed_only: bool = False,
        offset: int = 0,
        limit: int = 100,
    ) -> list[WebhookEventRead]:
        rows = self.events.list_for_tenant(tenant, failed_only=failed_only, offset=offset, limit=limit)
        return [WebhookEventRead.model_validate(row) for row in rows]

    def _get(self, event_id: str) -> WebhookEvent:
        event = self.events.get(event_id)
        if event is None:
            raise NotFoundError("Webhook event not found")
        return event
