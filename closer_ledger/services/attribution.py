"""Inclusion-flag resolver deduplicating reschedule chains and duplicate bookings."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy.orm import Session

from closer_ledger.core.settings import get_settings
from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.base import as_utc
from closer_ledger.db.models import Appointment, AppointmentStatus, InclusionFlag
from closer_ledger.repositories.appointment import AppointmentRepository
from closer_ledger.repositories.contact import ContactRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AttributionSummary:
    contacts: int = 0
    appointments: int = 0
    errors: int = 0
    failed_contact_ids: list[str] = field(default_factory=list)


def _sort_key(appointment: Appointment):
    return (as_utc(appointment.scheduled_at), as_utc(appointment.created_at), appointment.id)


class _DisjointSet:
    def __init__(self, keys) -> None:
        self.parent = {key: key for key in keys}

    def find(self, key: str) -> str:
        root = key
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[key] != root:
            self.parent[key], key = root, self.parent[key]
        return root

    def union(self, left: str, right: str) -> None:
        left_root, right_root = self.find(left), self.find(right)
        if left_root != right_root:
            self.parent[right_root] = left_root


def cluster_appointments(appointments: list[Appointment], window: timedelta) -> list[list[Appointment]]:
    """Group a contact's appointments into duplicate clusters, each sorted oldest first.

    Reschedule links always join a cluster. Bookings no further apart than
    ``window`` join regardless of status.
    """

    ordered = sorted(appointments, key=_sort_key)
    groups = _DisjointSet(a.id for a in ordered)
    for appointment in ordered:
        if appointment.rescheduled_from_id and appointment.rescheduled_from_id in groups.parent:
            groups.union(appointment.rescheduled_from_id, appointment.id)
    for earlier, later in zip(ordered, ordered[1:]):
        if as_utc(later.scheduled_at) - as_utc(earlier.scheduled_at) <= window:
            groups.union(earlier.id, later.id)

    clusters: dict[str, list[Appointment]] = {}
    for appointment in ordered:
        clusters.setdefault(groups.find(appointment.id), []).append(appointment)
    return list(clusters.values())


def assign_flags(cluster: list[Appointment]) -> dict[str, InclusionFlag]:
    """The latest non-cancelled member is included; a fully cancelled cluster includes nobody."""

    active = [a for a in cluster if a.status != AppointmentStatus.CANCELLED]
    winner = active[-1].id if active else None
    return {
        a.id: InclusionFlag.INCLUDED if a.id == winner else InclusionFlag.EXCLUDED
        for a in cluster
    }


class AttributionResolver:
    """Recompute inclusion flags from scratch for a contact or a whole tenant."""

    def __init__(self, session: Session, window_hours: int | None = None) -> None:
        self.session = session
        self.appointments = AppointmentRepository(session)
        self.contacts = ContactRepository(session)
        hours = get_settings().attribution_window_hours if window_hours is None else window_hours
        self.window = timedelta(hours=hours)

    def recalculate(self, tenant: TenantContext, contact_id: str) -> dict[str, InclusionFlag]:
        """Assign flags for every appointment of the contact and commit."""

        appointments = self.appointments.list_for_contact(tenant, contact_id)
        flags: dict[str, InclusionFlag] = {}
        for cluster in cluster_appointments(appointments, self.window):
            flags.update(assign_flags(cluster))
        for appointment in appointments:
            if appointment.inclusion_flag != flags[appointment.id]:
                appointment.inclusion_flag = flags[appointment.id]
        self.session.commit()
        return flags

    def recalculate_safely(self, tenant: TenantContext, contact_id: str) -> bool:
        """Best-effort variant used after appointment mutations; failures are only logged."""

        try:
            self.recalculate(tenant, contact_id)
        except Exception:
            self.session.rollback()
            logger.exception("Inclusion flag recalculation failed for contact %s", contact_id)
            return False
        return True

    def recalculate_tenant(self, tenant: TenantContext) -> AttributionSummary:
        summary = AttributionSummary()
        for contact_id in self.contacts.ids_for_tenant(tenant):
            try:
                flags = self.recalculate(tenant, contact_id)
            except Exception:
                self.session.rollback()
                logger.exception("Inclusion flag recalculation failed for contact %s", contact_id)
                summary.errors += 1
                summary.failed_contact_ids.append(contact_id)
                continue
            summary.contacts += 1
            summary.appointments += len(flags)
        logger.info(
            "Recalculated inclusion flags for tenant %s: %s contacts, %s appointments, %s errors",
            tenant.tenant_id,
            summary.contacts,
            summary.appointments,
            summary.errors,
        )
        return summary
