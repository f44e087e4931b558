"""Unit tests for the root API router configuration."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from closer_ledger.api.router import router


def _app() -> FastAPI:
    app = FastAPI()
    app.include_router(router, prefix="/api")
    return app


def test_health_check_returns_ok() -> None:
    client = TestClient(_app())
    try:
        response = client.get("/api/health")
    finally:
        client.close()

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_router_exposes_every_endpoint_module() -> None:
    paths = {getattr(route, "path", None) for route in _app().routes}

    assert {
        "/api/tenants",
        "/api/tenants/{tenant_id}/closers",
        "/api/tenants/{tenant_id}/commission-roles",
        "/api/webhooks/payments",
        "/api/webhooks/crm",
        "/api/tenants/{tenant_id}/unmatched-payments/bulk-match",
        "/api/tenants/{tenant_id}/unmatched-payments/{unmatched_id}/match",
        "/api/tenants/{tenant_id}/commissions/{commission_id}/override",
        "/api/tenants/{tenant_id}/commissions/{commission_id}/release",
        "/api/tenants/{tenant_id}/webhook-events",
        "/api/tenants/{tenant_id}/attribution/recalculate",
    } <= paths
