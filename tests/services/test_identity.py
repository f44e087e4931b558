"""Tests for tenant and contact resolution."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from closer_ledger.services.exceptions import TenantResolutionError
from closer_ledger.services.identity import ContactHints, IdentityResolver, TenantHints


def test_explicit_tenant_id_wins(session, tenant, other_tenant) -> None:
    resolved = IdentityResolver(session).resolve_tenant(TenantHints(tenant_id=other_tenant.id, location_id="loc-1"))

    assert resolved.tenant_id == other_tenant.id


def test_unknown_explicit_tenant_is_rejected(session, tenant) -> None:
    with pytest.raises(TenantResolutionError) as exc_info:
        IdentityResolver(session).resolve_tenant(TenantHints(tenant_id="missing", location_id="loc-1"))

    assert exc_info.value.reason == "Unknown tenant missing"


def test_location_then_appointment_then_closer(session, tenant, other_tenant, factory) -> None:
    resolver = IdentityResolver(session)
    appointment = factory.appointment(
        factory.contact(tenant=other_tenant), datetime(2025, 1, 1, tzinfo=timezone.utc)
    )
    factory.closer("solo@x.com", tenant=other_tenant)

    assert resolver.resolve_tenant(TenantHints(location_id="loc-1")).tenant_id == tenant.id
    assert resolver.resolve_tenant(TenantHints(location_id="nope", appointment_id=appointment.id)).tenant_id == other_tenant.id
    assert resolver.resolve_tenant(TenantHints(closer_email="SOLO@x.com")).tenant_id == other_tenant.id


def test_no_hints_fail(session, tenant) -> None:
    with pytest.raises(TenantResolutionError):
        IdentityResolver(session).resolve_tenant(TenantHints())


def test_resolve_contact_reuses_by_email_and_fills_gaps(session, tenant_context, factory) -> None:
    existing = factory.contact("buyer@example.com", name=None)

    resolved = IdentityResolver(session).resolve_contact(
        tenant_context, ContactHints(email="Buyer@Example.com", phone="555-010-2000", name="Jordan")
    )

    assert resolved.id == existing.id
    assert resolved.name == "Jordan"
    assert resolved.phone == "5550102000"


def test_resolve_contact_prefers_external_id(session, tenant_context, factory) -> None:
    factory.contact("buyer@example.com")
    by_external = factory.contact("other@example.com", external_id="crm-1")

    resolved = IdentityResolver(session).resolve_contact(
        tenant_context, ContactHints(email="buyer@example.com", external_id="crm-1")
    )

    assert resolved.id == by_external.id
    assert resolved.email == "other@example.com"


def test_resolve_contact_falls_back_to_phone(session, tenant_context, factory) -> None:
    existing = factory.contact(None, phone="5550102000")

    resolved = IdentityResolver(session).resolve_contact(tenant_context, ContactHints(phone="(555) 010-2000"))

    assert resolved.id == existing.id


def test_resolve_contact_creates_when_unknown(session, tenant_context, factory, other_tenant) -> None:
    factory.contact("buyer@example.com", tenant=other_tenant)

    created = IdentityResolver(session).resolve_contact(tenant_context, ContactHints(email="buyer@example.com"))

    assert created.tenant_id == tenant_context.tenant_id
    assert created.email == "buyer@example.com"
