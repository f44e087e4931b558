"""Schemas for the webhook audit ledger."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class WebhookEventRead(BaseModel):
    id: str
    processor: str
    event_type: str
    tenant_id: str | None
    payload: Any = None
    processed: bool
    processed_at: datetime | None
    error: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
