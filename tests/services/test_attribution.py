"""Tests for inclusion-flag clustering and recalculation."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from closer_ledger.db.models import AppointmentStatus, InclusionFlag
from closer_ledger.services import attribution
from closer_ledger.services.attribution import AttributionResolver, assign_flags, cluster_appointments

START = datetime(2025, 6, 1, 15, 0, tzinfo=timezone.utc)
WINDOW = timedelta(hours=72)


def _appt(appointment_id: str, offset_hours: float, status=AppointmentStatus.SCHEDULED, rescheduled_from_id=None):
    return SimpleNamespace(
        id=appointment_id,
        scheduled_at=START + timedelta(hours=offset_hours),
        created_at=START,
        status=status,
        rescheduled_from_id=rescheduled_from_id,
    )


def test_reschedule_links_join_regardless_of_distance() -> None:
    first = _appt("a", 0, AppointmentStatus.CANCELLED)
    second = _appt("b", 24 * 30, rescheduled_from_id="a")

    clusters = cluster_appointments([second, first], WINDOW)

    assert [[a.id for a in cluster] for cluster in clusters] == [["a", "b"]]


def test_adjacent_duplicate_bookings_cluster() -> None:
    clusters = cluster_appointments([_appt("a", 0), _appt("b", 2)], WINDOW)

    assert len(clusters) == 1


def test_cancelled_then_new_booking_clusters() -> None:
    clusters = cluster_appointments([_appt("a", 0, AppointmentStatus.CANCELLED), _appt("b", 48)], WINDOW)

    assert len(clusters) == 1


def test_adjacent_bookings_cluster_whatever_their_status() -> None:
    first = _appt("a", 0, AppointmentStatus.SHOWED)
    second = _appt("b", 24)

    assert len(cluster_appointments([first, second], WINDOW)) == 1


def test_bookings_outside_window_stay_separate() -> None:
    assert len(cluster_appointments([_appt("a", 0), _appt("b", 100)], WINDOW)) == 2


def test_assign_flags_includes_latest_active_member() -> None:
    cluster = [_appt("a", 0), _appt("b", 5), _appt("c", 10, AppointmentStatus.CANCELLED)]

    flags = assign_flags(cluster)

    assert flags == {"a": InclusionFlag.EXCLUDED, "b": InclusionFlag.INCLUDED, "c": InclusionFlag.EXCLUDED}


def test_assign_flags_fully_cancelled_cluster_includes_nobody() -> None:
    cluster = [_appt("a", 0, AppointmentStatus.CANCELLED), _appt("b", 5, AppointmentStatus.CANCELLED)]

    assert set(assign_flags(cluster).values()) == {InclusionFlag.EXCLUDED}


def test_recalculate_reschedule_chain_includes_only_final(session, tenant_context, factory) -> None:
    contact = factory.contact()
    original = factory.appointment(contact, START, status=AppointmentStatus.CANCELLED)
    second = factory.appointment(
        contact, START + timedelta(days=2), status=AppointmentStatus.CANCELLED, rescheduled_from=original
    )
    third = factory.appointment(
        contact, START + timedelta(days=9), status=AppointmentStatus.CANCELLED, rescheduled_from=second
    )
    final = factory.appointment(contact, START + timedelta(days=20), rescheduled_from=third)

    flags = AttributionResolver(session, window_hours=72).recalculate(tenant_context, contact.id)

    included = [key for key, flag in flags.items() if flag == InclusionFlag.INCLUDED]
    assert included == [final.id]
    session.refresh(original)
    assert original.inclusion_flag == InclusionFlag.EXCLUDED


def test_recalculate_showed_call_and_duplicate_booking_include_one(session, tenant_context, factory) -> None:
    contact = factory.contact()
    factory.appointment(contact, START, status=AppointmentStatus.SHOWED)
    duplicate = factory.appointment(contact, START + timedelta(minutes=30))

    flags = AttributionResolver(session, window_hours=72).recalculate(tenant_context, contact.id)

    included = [key for key, flag in flags.items() if flag == InclusionFlag.INCLUDED]
    assert included == [duplicate.id]


def test_recalculate_is_idempotent(session, tenant_context, factory) -> None:
    contact = factory.contact()
    factory.appointment(contact, START)
    factory.appointment(contact, START + timedelta(hours=1))
    resolver = AttributionResolver(session, window_hours=72)

    first = resolver.recalculate(tenant_context, contact.id)
    second = resolver.recalculate(tenant_context, contact.id)

    assert first == second


def test_recalculate_tenant_reports_counts(session, tenant_context, factory) -> None:
    one = factory.contact("one@example.com")
    two = factory.contact("two@example.com")
    factory.appointment(one, START)
    factory.appointment(two, START)
    factory.appointment(two, START + timedelta(days=10))

    summary = AttributionResolver(session).recalculate_tenant(tenant_context)

    assert summary.contacts == 2
    assert summary.appointments == 3
    assert summary.errors == 0


def test_recalculate_tenant_isolates_failures(session, tenant_context, factory, monkeypatch: pytest.MonkeyPatch) -> None:
    good = factory.contact("good@example.com")
    bad = factory.contact("bad@example.com")
    factory.appointment(good, START)
    factory.appointment(bad, START)
    bad_id = bad.id
    original = attribution.cluster_appointments

    def flaky(appointments, window):
        if any(a.contact_id == bad_id for a in appointments):
            raise RuntimeError("boom")
        return original(appointments, window)

    monkeypatch.setattr(attribution, "cluster_appointments", flaky)

    summary = AttributionResolver(session).recalculate_tenant(tenant_context)

    assert summary.contacts == 1
    assert summary.errors == 1
    assert summary.failed_contact_ids == [bad_id]


def test_recalculate_safely_swallows_and_reports(session, tenant_context, monkeypatch: pytest.MonkeyPatch) -> None:
    resolver = AttributionResolver(session)

    def explode(tenant, contact_id):
        raise RuntimeError("db down")

    monkeypatch.setattr(resolver, "recalculate", explode)

    assert resolver.recalculate_safely(tenant_context, "contact-1") is False
