"""Normalize heterogeneous CRM appointment webhooks into one canonical record.

Integrations deliver the same appointment in several layouts: flat at the
root, wrapped in ``appointment``, inside ``triggerData``, in workflow
``customData`` or behind ``data`` / ``event`` envelopes. Each layout has its
own extractor; extractors run in a fixed priority order and the first
non-empty value for each field wins.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Callable

from closer_ledger.db.models import AppointmentStatus
from closer_ledger.utils.normalize import clean_string, normalize_email, normalize_phone, parse_datetime

CREATE_STATUSES = frozenset({"confirmed", "scheduled", "booked", "new"})
CANCEL_STATUSES = frozenset({"cancelled", "canceled"})
RESCHEDULE_STATUSES = frozenset({"rescheduled"})

_STATUS_MAP = {
    "showed": AppointmentStatus.SHOWED,
    "show": AppointmentStatus.SHOWED,
    "noshow": AppointmentStatus.NO_SHOW,
    "no_show": AppointmentStatus.NO_SHOW,
    "no-show": AppointmentStatus.NO_SHOW,
    "cancelled": AppointmentStatus.CANCELLED,
    "canceled": AppointmentStatus.CANCELLED,
    "signed": AppointmentStatus.SIGNED,
    "won": AppointmentStatus.SIGNED,
}


@dataclass(slots=True)
class PartialAppointment:
    """Fields one extractor found; ``None`` means "not present in this layout"."""

    appointment_external_id: str | None = None
    contact_external_id: str | None = None
    closer_external_id: str | None = None
    calendar_external_id: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    status: str | None = None
    location_hint: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    contact_name: str | None = None
    rescheduled_from_external_id: str | None = None

    def fill_from(self, other: "PartialAppointment") -> None:
        for item in fields(self):
            if getattr(self, item.name) is None:
                setattr(self, item.name, getattr(other, item.name))


@dataclass(slots=True, frozen=True)
class NormalizedAppointment:
    appointment_external_id: str
    contact_external_id: str | None
    closer_external_id: str | None
    calendar_external_id: str | None
    start_time: datetime | None
    end_time: datetime | None
    status: str
    location_hint: str | None
    contact_email: str | None
    contact_phone: str | None
    contact_name: str | None
    rescheduled_from_external_id: str | None

    @property
    def action(self) -> str:
        """Which handler the raw CRM status routes to."""

        if self.status in CREATE_STATUSES:
            return "create"
        if self.status in CANCEL_STATUSES:
            return "cancel"
        if self.status in RESCHEDULE_STATUSES:
            return "reschedule"
        return "update"

    @property
    def appointment_status(self) -> AppointmentStatus:
        return _STATUS_MAP.get(self.status, AppointmentStatus.SCHEDULED)


@dataclass(slots=True, frozen=True)
class Unrecognized:
    reason: str


def _first(source: dict, *keys: str) -> str | None:
    for key in keys:
        value = source.get(key)
        if isinstance(value, (dict, list)):
            continue
        text = clean_string(value)
        if text is not None:
            return text
    return None


def _nested(source: Any, *path: str) -> dict | None:
    for key in path:
        if not isinstance(source, dict):
            return None
        source = source.get(key)
    return source if isinstance(source, dict) else None


def _appointment_fields(source: dict) -> PartialAppointment:
    calendar = _nested(source, "calendar") or {}
    contact = _nested(source, "contact") or {}
    location = _nested(source, "location") or {}
    first_last = " ".join(
        part for part in (_first(source, "first_name", "firstName"), _first(source, "last_name", "lastName")) if part
    )
    return PartialAppointment(
        appointment_external_id=_first(source, "appointmentId", "appointment_id", "id")
        or _first(calendar, "appointmentId"),
        contact_external_id=_first(source, "contactId", "contact_id") or _first(contact, "id"),
        closer_external_id=_first(source, "assignedUserId", "assigned_user_id", "assignedUser", "userId"),
        calendar_external_id=_first(source, "calendarId", "calendar_id") or _first(calendar, "id"),
        start_time=_first(source, "startTime", "start_time", "scheduledAt", "scheduled_at")
        or _first(calendar, "startTime"),
        end_time=_first(source, "endTime", "end_time") or _first(calendar, "endTime"),
        status=_first(source, "appointmentStatus", "appointment_status", "status")
        or _first(calendar, "appoinmentStatus", "appointmentStatus", "status"),
        location_hint=_first(source, "locationId", "location_id") or _first(location, "id"),
        contact_email=_first(source, "email", "contactEmail") or _first(contact, "email"),
        contact_phone=_first(source, "phone", "contactPhone") or _first(contact, "phone"),
        contact_name=_first(source, "full_name", "contactName") or _first(contact, "name") or first_last or None,
        rescheduled_from_external_id=_first(
            source, "rescheduledFromId", "rescheduled_from_id", "originalAppointmentId"
        ),
    )


def from_root(body: dict) -> PartialAppointment | None:
    return _appointment_fields(body)


def from_appointment(body: dict) -> PartialAppointment | None:
    nested = _nested(body, "appointment")
    return _appointment_fields(nested) if nested is not None else None


def from_trigger_data(body: dict) -> PartialAppointment | None:
    nested = _nested(body, "triggerData", "appointment") or _nested(body, "triggerData")
    return _appointment_fields(nested) if nested is not None else None


def from_custom_data(body: dict) -> PartialAppointment | None:
    nested = _nested(body, "customData")
    return _appointment_fields(nested) if nested is not None else None


def from_data_envelope(body: dict) -> PartialAppointment | None:
    nested = _nested(body, "data")
    return _appointment_fields(nested) if nested is not None else None


def from_event_envelope(body: dict) -> PartialAppointment | None:
    nested = _nested(body, "event")
    return _appointment_fields(nested) if nested is not None else None


EXTRACTORS: tuple[Callable[[dict], PartialAppointment | None], ...] = (
    from_root,
    from_appointment,
    from_trigger_data,
    from_custom_data,
    from_data_envelope,
    from_event_envelope,
)


def normalize(body: Any) -> NormalizedAppointment | Unrecognized:
    """Merge every extractor's findings; fail closed when no appointment id exists."""

    if not isinstance(body, dict):
        return Unrecognized(reason="payload is not a JSON object")

    merged = PartialAppointment()
    for extractor in EXTRACTORS:
        partial = extractor(body)
        if partial is not None:
            merged.fill_from(partial)

    if merged.appointment_external_id is None:
        return Unrecognized(reason="no appointment id in payload")

    start_time = parse_datetime(merged.start_time)
    if merged.start_time is not None and start_time is None:
        return Unrecognized(reason=f"unparseable start time {merged.start_time!r}")

    return NormalizedAppointment(
        appointment_external_id=merged.appointment_external_id,
        contact_external_id=merged.contact_external_id,
        closer_external_id=merged.closer_external_id,
        calendar_external_id=merged.calendar_external_id,
        start_time=start_time,
        end_time=parse_datetime(merged.end_time),
        status=(merged.status or "scheduled").strip().lower(),
        location_hint=merged.location_hint,
        contact_email=normalize_email(merged.contact_email),
        contact_phone=normalize_phone(merged.contact_phone),
        contact_name=merged.contact_name,
        rescheduled_from_external_id=merged.rescheduled_from_external_id,
    )
