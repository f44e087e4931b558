"""Unit tests for tenant context utilities."""
from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

from closer_ledger.core.tenant import (
    TenantContext,
    TenantMismatchError,
    TenantNotFoundError,
    context_for,
    load_tenant_context,
)
from closer_ledger.db.models import Tenant


def test_owns_compares_identifiers_as_strings() -> None:
    context = TenantContext(tenant_id="123", tenant_name="Tenant")

    assert context.owns(SimpleNamespace(tenant_id=123))
    assert not context.owns(SimpleNamespace(tenant_id="999"))
    assert not context.owns(object())


def test_require_owned_names_the_entity() -> None:
    context = TenantContext(tenant_id="tenant-123", tenant_name="Tenant")

    with pytest.raises(TenantMismatchError, match="Closer closer-9"):
        context.require_owned(SimpleNamespace(id="closer-9", tenant_id="tenant-999"), "Closer")


def test_context_for_copies_tenant_settings(tenant: Tenant) -> None:
    context = context_for(tenant)

    assert context.tenant_id == tenant.id
    assert context.tenant_name == "Test Tenant"
    assert context.crm_location_id == "loc-1"
    assert context.fallback_commission_rate == Decimal("0.10")


def test_context_for_without_fallback_rate(other_tenant: Tenant) -> None:
    assert context_for(other_tenant).fallback_commission_rate is None


def test_load_tenant_context_returns_bound_context(session: Session, tenant: Tenant) -> None:
    assert load_tenant_context(session, tenant.id).tenant_id == tenant.id


def test_load_tenant_context_missing_raises(session: Session) -> None:
    with pytest.raises(TenantNotFoundError):
        load_tenant_context(session, "missing")
