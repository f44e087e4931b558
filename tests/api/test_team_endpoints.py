"""Unit tests for tenant and team endpoints."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from closer_ledger.api.dependencies import get_team_service, get_tenant_service
from closer_ledger.api.endpoints import team, tenants
from closer_ledger.schemas.team import CloserCreate, CloserRead, CommissionRoleCreate, CommissionRoleRead
from closer_ledger.schemas.tenant import TenantCreate, TenantRead
from closer_ledger.services.exceptions import ConflictError, NotFoundError

TENANT_ID = "0b6f0c8e-5d0c-4a3e-9c63-1f8e4a2b7d10"
CREATED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)


class TenantServiceStub:
    def __init__(self) -> None:
        self.created: list[TenantCreate] = []
        self.exception: Exception | None = None

    def create(self, payload: TenantCreate) -> TenantRead:
        self.created.append(payload)
        if self.exception is not None:
            raise self.exception
        return TenantRead(
            id=TENANT_ID,
            name=payload.name,
            crm_location_id=payload.crm_location_id,
            fallback_commission_rate=payload.fallback_commission_rate,
            created_at=CREATED_AT,
        )

    def list(self) -> list[TenantRead]:
        return []

    def get(self, tenant_id: str) -> TenantRead:
        raise NotFoundError("Tenant not found")


class TeamServiceStub:
    def __init__(self) -> None:
        self.closers: list[CloserCreate] = []
        self.roles: list[CommissionRoleCreate] = []
        self.exception: Exception | None = None

    def create_role(self, payload: CommissionRoleCreate) -> CommissionRoleRead:
        self.roles.append(payload)
        return CommissionRoleRead(
            id="role-1",
            tenant_id=TENANT_ID,
            name=payload.name,
            default_rate=payload.default_rate,
            created_at=CREATED_AT,
        )

    def list_roles(self) -> list[CommissionRoleRead]:
        return []

    def create_closer(self, payload: CloserCreate) -> CloserRead:
        self.closers.append(payload)
        if self.exception is not None:
            raise self.exception
        return CloserRead(
            id="closer-1",
            tenant_id=TENANT_ID,
            email=payload.email,
            name=payload.name,
            crm_user_id=payload.crm_user_id,
            custom_commission_rate=payload.custom_commission_rate,
            commission_role_id=payload.commission_role_id,
            created_at=CREATED_AT,
        )

    def list_closers(self, offset: int = 0, limit: int = 100) -> list[CloserRead]:
        return []


@pytest.fixture()
def api_client() -> tuple[TestClient, FastAPI]:
    app = FastAPI()
    app.include_router(tenants.router)
    app.include_router(team.router)

    with TestClient(app) as client:
        yield client, app
        app.dependency_overrides.clear()


def test_create_tenant_returns_created(api_client) -> None:
    client, app = api_client
    service = TenantServiceStub()
    app.dependency_overrides[get_tenant_service] = lambda: service

    response = client.post("/tenants", json={"name": "Acme", "crm_location_id": "loc-9"})

    assert response.status_code == 201
    assert response.json()["crm_location_id"] == "loc-9"


def test_create_tenant_conflict_returns_409(api_client) -> None:
    client, app = api_client
    service = TenantServiceStub()
    service.exception = ConflictError("Tenant name or CRM location already exists")
    app.dependency_overrides[get_tenant_service] = lambda: service

    response = client.post("/tenants", json={"name": "Acme"})

    assert response.status_code == 409


def test_get_unknown_tenant_returns_404(api_client) -> None:
    client, app = api_client
    app.dependency_overrides[get_tenant_service] = TenantServiceStub

    response = client.get("/tenants/missing")

    assert response.status_code == 404


def test_tenant_rate_out_of_range_is_rejected(api_client) -> None:
    client, app = api_client
    service = TenantServiceStub()
    app.dependency_overrides[get_tenant_service] = lambda: service

    response = client.post("/tenants", json={"name": "Acme", "fallback_commission_rate": 1.5})

    assert response.status_code == 422
    assert service.created == []


def test_create_closer_lowercases_email(api_client) -> None:
    client, app = api_client
    service = TeamServiceStub()
    app.dependency_overrides[get_team_service] = lambda: service

    response = client.post(f"/tenants/{TENANT_ID}/closers", json={"email": " Rep@Example.COM "})

    assert response.status_code == 201
    assert response.json()["email"] == "rep@example.com"


def test_create_closer_unknown_role_returns_404(api_client) -> None:
    client, app = api_client
    service = TeamServiceStub()
    service.exception = NotFoundError("Commission role not found")
    app.dependency_overrides[get_team_service] = lambda: service

    response = client.post(
        f"/tenants/{TENANT_ID}/closers",
        json={"email": "rep@example.com", "commission_role_id": "nope"},
    )

    assert response.status_code == 404


def test_create_role(api_client) -> None:
    client, app = api_client
    service = TeamServiceStub()
    app.dependency_overrides[get_team_service] = lambda: service

    response = client.post(f"/tenants/{TENANT_ID}/commission-roles", json={"name": "Senior", "default_rate": 0.2})

    assert response.status_code == 201
    assert service.roles[0].default_rate == pytest.approx(0.2)
