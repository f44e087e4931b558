"""REST endpoint routers exposed by the API."""
from . import (
    attribution,
    commissions,
    crm,
    payments,
    team,
    tenants,
    unmatched_payments,
    webhook_events,
)

__all__ = [
    "attribution",
    "commissions",
    "crm",
    "payments",
    "team",
    "tenants",
    "unmatched_payments",
    "webhook_events",
]
