"""Tests for CRM payload normalization."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from closer_ledger.db.models import AppointmentStatus
from closer_ledger.services.crm_normalizer import (
    NormalizedAppointment,
    PartialAppointment,
    Unrecognized,
    from_custom_data,
    from_root,
    from_trigger_data,
    normalize,
)


def test_flat_root_payload() -> None:
    result = normalize(
        {
            "appointmentId": "appt-1",
            "contactId": "c-1",
            "assignedUserId": "u-1",
            "startTime": "2025-10-30T14:00:00Z",
            "appointmentStatus": "Confirmed",
            "locationId": "loc-1",
            "email": "Buyer@Example.com",
            "phone": "(555) 010-2000",
        }
    )

    assert isinstance(result, NormalizedAppointment)
    assert result.appointment_external_id == "appt-1"
    assert result.start_time == datetime(2025, 10, 30, 14, 0, tzinfo=timezone.utc)
    assert result.status == "confirmed"
    assert result.action == "create"
    assert result.contact_email == "buyer@example.com"
    assert result.contact_phone == "5550102000"
    assert result.location_hint == "loc-1"


def test_nested_appointment_with_calendar_block() -> None:
    result = normalize(
        {
            "location": {"id": "loc-9"},
            "contact": {"id": "c-9", "email": "x@example.com"},
            "calendar": {
                "appointmentId": "appt-9",
                "startTime": "Thu, Oct 30th, 2025 | 2:00 pm",
                "appoinmentStatus": "cancelled",
            },
        }
    )

    assert isinstance(result, NormalizedAppointment)
    assert result.appointment_external_id == "appt-9"
    assert result.contact_external_id == "c-9"
    assert result.location_hint == "loc-9"
    assert result.action == "cancel"
    assert result.appointment_status == AppointmentStatus.CANCELLED


def test_trigger_data_and_custom_data_layouts() -> None:
    trigger = {"triggerData": {"appointment": {"id": "appt-t", "startTime": "2025-01-01T10:00:00"}}}
    custom = {"customData": {"appointment_id": "appt-c", "status": "rescheduled"}}

    assert normalize(trigger).appointment_external_id == "appt-t"
    custom_result = normalize(custom)
    assert custom_result.appointment_external_id == "appt-c"
    assert custom_result.action == "reschedule"


def test_envelopes_fill_fields_missing_at_root() -> None:
    result = normalize(
        {
            "type": "AppointmentUpdate",
            "locationId": "loc-1",
            "data": {"appointmentId": "appt-d", "status": "showed", "startTime": "2025-01-01T10:00:00Z"},
            "event": {"contactId": "c-e"},
        }
    )

    assert result.appointment_external_id == "appt-d"
    assert result.contact_external_id == "c-e"
    assert result.action == "update"
    assert result.appointment_status == AppointmentStatus.SHOWED


def test_root_value_wins_over_nested_value() -> None:
    result = normalize({"appointmentId": "root", "appointment": {"id": "nested", "status": "booked"}})

    assert result.appointment_external_id == "root"
    assert result.status == "booked"


@pytest.mark.parametrize(
    "body,reason",
    [
        ([1, 2], "payload is not a JSON object"),
        ({"contactId": "c-1"}, "no appointment id in payload"),
    ],
)
def test_unrecognized_payloads(body, reason) -> None:
    result = normalize(body)

    assert isinstance(result, Unrecognized)
    assert result.reason == reason


def test_unparseable_start_time_is_unrecognized() -> None:
    result = normalize({"appointmentId": "appt-1", "startTime": "whenever"})

    assert isinstance(result, Unrecognized)
    assert "unparseable start time" in result.reason


def test_missing_status_defaults_to_scheduled_update() -> None:
    result = normalize({"appointmentId": "appt-1"})

    assert result.status == "scheduled"
    assert result.action == "create"
    assert result.start_time is None


@pytest.mark.parametrize(
    "status,expected",
    [("no-show", AppointmentStatus.NO_SHOW), ("won", AppointmentStatus.SIGNED), ("mystery", AppointmentStatus.SCHEDULED)],
)
def test_status_mapping(status, expected) -> None:
    assert normalize({"appointmentId": "a", "status": status}).appointment_status == expected


def test_extractors_are_independent() -> None:
    assert from_root({"id": "a"}).appointment_external_id == "a"
    assert from_trigger_data({"other": 1}) is None
    assert from_custom_data({"customData": {"appointmentId": "c"}}).appointment_external_id == "c"


def test_partial_fill_from_keeps_existing_values() -> None:
    first = PartialAppointment(appointment_external_id="a")
    first.fill_from(PartialAppointment(appointment_external_id="b", status="new"))

    assert first.appointment_external_id == "a"
    assert first.status == "new"
