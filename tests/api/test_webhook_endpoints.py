"""Unit tests for the payment and CRM webhook endpoints."""
from __future__ import annotations

from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from closer_ledger.api.dependencies import get_crm_service, get_payment_service
from closer_ledger.api.endpoints import crm, payments
from closer_ledger.schemas.webhook import CrmWebhookResponse, PaymentWebhookResponse
from closer_ledger.services.exceptions import AuthenticationError, TenantResolutionError, ValidationError


class PaymentServiceStub:
    def __init__(self) -> None:
        self.calls: list[tuple[Any, str | None]] = []
        self.result = PaymentWebhookResponse(status="matched", matched=True, sale_id="sale-1")
        self.exception: Exception | None = None

    def handle(self, body: Any, provided_secret: str | None = None) -> PaymentWebhookResponse:
        self.calls.append((body, provided_secret))
        if self.exception is not None:
            raise self.exception
        return self.result


class CrmServiceStub:
    def __init__(self, status_code: int, result: CrmWebhookResponse) -> None:
        self.status_code = status_code
        self.result = result
        self.bodies: list[Any] = []

    def process(self, body: Any) -> tuple[int, CrmWebhookResponse]:
        self.bodies.append(body)
        return self.status_code, self.result


@pytest.fixture()
def api_client() -> tuple[TestClient, FastAPI]:
    app = FastAPI()
    app.include_router(payments.router)
    app.include_router(crm.router)

    with TestClient(app) as client:
        yield client, app
        app.dependency_overrides.clear()


def test_matched_payment_returns_ok(api_client) -> None:
    client, app = api_client
    service = PaymentServiceStub()
    app.dependency_overrides[get_payment_service] = lambda: service

    response = client.post(
        "/webhooks/payments",
        json={"paymentId": "p1"},
        headers={"X-Webhook-Secret": "s3cret"},
    )

    assert response.status_code == 200
    assert response.json()["sale_id"] == "sale-1"
    assert service.calls == [({"paymentId": "p1"}, "s3cret")]


def test_unmatched_payment_returns_accepted(api_client) -> None:
    client, app = api_client
    service = PaymentServiceStub()
    service.result = PaymentWebhookResponse(status="unmatched", unmatched_payment_id="u-1")
    app.dependency_overrides[get_payment_service] = lambda: service

    response = client.post("/webhooks/payments", json={"paymentId": "p1"})

    assert response.status_code == 202
    assert response.json()["unmatched_payment_id"] == "u-1"
    assert service.calls[0][1] is None


@pytest.mark.parametrize(
    ("exc", "expected_status"),
    [
        (AuthenticationError("Invalid webhook secret"), 401),
        (ValidationError("processor, paymentId, amount, and customerEmail are required"), 400),
        (TenantResolutionError("no tenant hint matched"), 400),
    ],
)
def test_payment_service_errors_are_mapped(api_client, exc, expected_status) -> None:
    client, app = api_client
    service = PaymentServiceStub()
    service.exception = exc
    app.dependency_overrides[get_payment_service] = lambda: service

    response = client.post("/webhooks/payments", json={})

    assert response.status_code == expected_status
    assert response.json()["detail"] == str(exc)


def test_malformed_json_is_rejected_before_service(api_client) -> None:
    client, app = api_client
    service = PaymentServiceStub()
    app.dependency_overrides[get_payment_service] = lambda: service

    response = client.post(
        "/webhooks/payments",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert service.calls == []


def test_crm_event_status_code_comes_from_service(api_client) -> None:
    client, app = api_client
    service = CrmServiceStub(404, CrmWebhookResponse(status="tenant_not_found", event_id="evt-1"))
    app.dependency_overrides[get_crm_service] = lambda: service

    response = client.post("/webhooks/crm", json={"locationId": "nowhere"})

    assert response.status_code == 404
    assert response.json()["event_id"] == "evt-1"
    assert service.bodies == [{"locationId": "nowhere"}]


def test_crm_event_processed_returns_ok(api_client) -> None:
    client, app = api_client
    result = CrmWebhookResponse(status="processed", event_id="evt-2", appointment_id="appt-1", action="create")
    app.dependency_overrides[get_crm_service] = lambda: CrmServiceStub(200, result)

    response = client.post("/webhooks/crm", json={"appointmentId": "x"})

    assert response.status_code == 200
    assert response.json()["action"] == "create"
