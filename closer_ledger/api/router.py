"""Root API router for REST endpoints."""
from fastapi import APIRouter

from closer_ledger.api.endpoints import (
    attribution,
    commissions,
    crm,
    payments,
    team,
    tenants,
    unmatched_payments,
    webhook_events,
)

router = APIRouter()


@router.get("/health", tags=["health"], summary="Health check")
def health_check() -> dict[str, str]:
    """Return basic service health information."""

    return {"status": "ok"}


router.include_router(tenants.router)
router.include_router(team.router)
router.include_router(payments.router)
router.include_router(crm.router)
router.include_router(unmatched_payments.router)
router.include_router(commissions.router)
router.include_router(webhook_events.router)
router.include_router(attribution.router)
