"""Tests for the Strawberry GraphQL schema resolvers."""
from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from graphql import GraphQLError

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import ReleaseStatus, SaleStatus, UnmatchedPaymentStatus
from closer_ledger.graphql import schema
from closer_ledger.graphql.context import GraphQLContext
from closer_ledger.schemas.commission import CommissionOverrideRequest, CommissionRead
from closer_ledger.schemas.unmatched_payment import (
    BulkMatchItemResult,
    BulkMatchRequest,
    BulkMatchResponse,
    SaleRead,
    UnmatchedPaymentRead,
)
from closer_ledger.services.exceptions import NotFoundError

CREATED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)


class DummySession:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def graphql_info() -> tuple[SimpleNamespace, list[DummySession], GraphQLContext]:
    sessions: list[DummySession] = []

    def session_factory() -> DummySession:
        session = DummySession()
        sessions.append(session)
        return session

    context = GraphQLContext(
        tenant=TenantContext(tenant_id="tenant-1", tenant_name="Tenant One"),
        session_factory=session_factory,
        admin_user_id="admin-ctx",
    )
    return SimpleNamespace(context=context), sessions, context


def make_sale(**overrides: object) -> SaleRead:
    base = {
        "id": "sale-1",
        "tenant_id": "tenant-1",
        "external_id": "p1",
        "processor": "stripe",
        "amount": 500.0,
        "currency": "USD",
        "status": SaleStatus.PAID,
        "customer_email": "a@x.com",
        "customer_name": None,
        "paid_at": CREATED_AT,
        "contact_id": None,
        "appointment_id": None,
        "rep_id": None,
        "matched_by": None,
        "match_confidence": None,
        "manually_matched": False,
        "created_at": CREATED_AT,
    }
    base.update(overrides)
    return SaleRead(**base)


def make_commission() -> CommissionRead:
    return CommissionRead(
        id="com-1",
        tenant_id="tenant-1",
        sale_id="sale-1",
        rep_id="rep-1",
        gross_amount=500.0,
        percentage=0.1,
        amount=50.0,
        total_amount=50.0,
        payable_amount=75.0,
        released_amount=50.0,
        release_status=ReleaseStatus.RELEASED,
        override_amount=75.0,
        override_reason="split deal",
        override_by_user_id="admin-ctx",
        released_at=None,
        paid_at=None,
        clawback_requested_at=None,
        created_at=CREATED_AT,
    )


def test_health_returns_ok_status() -> None:
    assert schema.Query().health().status == "ok"


def test_unmatched_payments_converts_rows(monkeypatch: pytest.MonkeyPatch, graphql_info) -> None:
    info, sessions, context = graphql_info
    captured: dict[str, object] = {}
    entry = UnmatchedPaymentRead(
        id="u-1",
        tenant_id="tenant-1",
        sale_id="sale-1",
        status=UnmatchedPaymentStatus.PENDING,
        suggested_matches=[{"appointmentId": "appt-1"}],
        reviewed_at=None,
        reviewed_by_user_id=None,
        created_at=CREATED_AT,
        sale=make_sale(),
    )

    class FakeManualMatchService:
        def __init__(self, session, tenant) -> None:  # type: ignore[no-untyped-def]
            captured["session"] = session
            captured["tenant"] = tenant

        def list_queue(self, status=None, offset: int = 0, limit: int = 100):
            captured["status"] = status
            return [entry]

    monkeypatch.setattr(schema, "ManualMatchService", FakeManualMatchService)

    result = schema.Query().unmatched_payments(info)

    assert isinstance(result[0], schema.UnmatchedPaymentType)
    assert result[0].sale.external_id == "p1"
    assert result[0].suggested_matches == [{"appointmentId": "appt-1"}]
    assert captured["status"] == UnmatchedPaymentStatus.PENDING
    assert captured["tenant"] is context.tenant
    assert captured["session"] is sessions[0]
    assert sessions[0].closed is True


def test_sales_forwards_matched_filter(monkeypatch: pytest.MonkeyPatch, graphql_info) -> None:
    info, _, _ = graphql_info
    captured: dict[str, object] = {}

    class FakeManualMatchService:
        def __init__(self, session, tenant) -> None:  # type: ignore[no-untyped-def]
            pass

        def list_sales(self, matched=None, offset: int = 0, limit: int = 100):
            captured["matched"] = matched
            return [make_sale(appointment_id="appt-1", matched_by="manual")]

    monkeypatch.setattr(schema, "ManualMatchService", FakeManualMatchService)

    result = schema.Query().sales(info, matched=True)

    assert captured["matched"] is True
    assert result[0].matched_by == "manual"


def test_bulk_match_falls_back_to_context_admin(monkeypatch: pytest.MonkeyPatch, graphql_info) -> None:
    info, sessions, _ = graphql_info
    captured: dict[str, object] = {}

    class FakeManualMatchService:
        def __init__(self, session, tenant) -> None:  # type: ignore[no-untyped-def]
            pass

        def bulk_match(self, payload: BulkMatchRequest, user_id: str | None = None) -> BulkMatchResponse:
            captured["payload"] = payload
            captured["user_id"] = user_id
            return BulkMatchResponse(
                results=[
                    BulkMatchItemResult(payment_id="p1", appointment_id="a1", success=True, sale_id="sale-1"),
                    BulkMatchItemResult(payment_id="p2", appointment_id="a2", success=False, error="Payment not found"),
                ],
                total=2,
                successful=1,
                failed=1,
            )

    monkeypatch.setattr(schema, "ManualMatchService", FakeManualMatchService)

    result = schema.Mutation().bulk_match_payments(
        info,
        matches=[
            schema.BulkMatchInput(payment_id="p1", appointment_id="a1"),
            schema.BulkMatchInput(payment_id="p2", appointment_id="a2"),
        ],
    )

    assert captured["user_id"] == "admin-ctx"
    assert [item.payment_id for item in captured["payload"].matches] == ["p1", "p2"]
    assert result.failed == 1
    assert result.results[1].error == "Payment not found"
    assert sessions[0].closed is True


def test_override_commission_prefers_explicit_user(monkeypatch: pytest.MonkeyPatch, graphql_info) -> None:
    info, _, _ = graphql_info
    captured: dict[str, object] = {}

    class FakeCommissionService:
        def __init__(self, session, tenant) -> None:  # type: ignore[no-untyped-def]
            pass

        def override(self, commission_id: str, payload: CommissionOverrideRequest) -> CommissionRead:
            captured["commission_id"] = commission_id
            captured["payload"] = payload
            return make_commission()

    monkeypatch.setattr(schema, "CommissionService", FakeCommissionService)

    result = schema.Mutation().override_commission(
        info, commission_id="com-1", amount=75.0, reason="split deal", user_id="admin-explicit"
    )

    assert captured["commission_id"] == "com-1"
    assert captured["payload"].user_id == "admin-explicit"
    assert result.override_amount == pytest.approx(75.0)
    assert result.payable_amount == pytest.approx(75.0)
    assert result.release_status == ReleaseStatus.RELEASED


def test_commission_errors_become_graphql_errors(monkeypatch: pytest.MonkeyPatch, graphql_info) -> None:
    info, sessions, _ = graphql_info

    class ErrorCommissionService:
        def __init__(self, session, tenant) -> None:  # type: ignore[no-untyped-def]
            pass

        def override(self, commission_id: str, payload: CommissionOverrideRequest) -> CommissionRead:
            raise NotFoundError("Commission not found")

    monkeypatch.setattr(schema, "CommissionService", ErrorCommissionService)

    with pytest.raises(GraphQLError) as exc_info:
        schema.Mutation().override_commission(info, commission_id="missing", amount=1.0, reason="fix")

    assert str(exc_info.value) == "Commission not found"
    assert sessions[0].closed is True


def test_schema_exposes_queue_and_commission_fields() -> None:
    sdl = schema.schema.as_str()

    assert "unmatchedPayments" in sdl
    assert "bulkMatchPayments" in sdl
    assert "overrideCommission" in sdl
