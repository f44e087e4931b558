"""CRM appointment webhook processing."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Appointment, AppointmentStatus
from closer_ledger.repositories.appointment import AppointmentRepository
from closer_ledger.repositories.closer import CloserRepository
from closer_ledger.schemas.webhook import CrmWebhookResponse

from .attribution import AttributionResolver
from .crm_normalizer import NormalizedAppointment, Unrecognized, normalize
from .event_ledger import EventLedger
from .exceptions import TenantResolutionError, ValidationError
from .identity import ContactHints, IdentityResolver, TenantHints

logger = logging.getLogger(__name__)

PROCESSOR = "crm"


class CrmWebhookService:
    """Apply CRM appointment events and refresh attribution for touched contacts.

    Returns HTTP 200 for everything except an unresolvable tenant, so the
    upstream provider never retries a delivery we already recorded.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.ledger = EventLedger(session)
        self.identity = IdentityResolver(session)
        self.appointments = AppointmentRepository(session)
        self.closers = CloserRepository(session)
        self.attribution = AttributionResolver(session)

    def process(self, body: Any) -> tuple[int, CrmWebhookResponse]:
        event_type = _event_type(body)
        event_id = self.ledger.record(PROCESSOR, event_type, body)

        normalized = normalize(body)
        if isinstance(normalized, Unrecognized):
            self.ledger.mark_failed(event_id, f"Unrecognized payload: {normalized.reason}")
            return 200, CrmWebhookResponse(status="ignored", event_id=event_id, detail=normalized.reason)

        try:
            tenant = self.identity.resolve_tenant(TenantHints(location_id=normalized.location_hint))
        except TenantResolutionError as exc:
            self.ledger.mark_failed(event_id, f"Tenant not resolved: {exc.reason}")
            return 404, CrmWebhookResponse(status="tenant_not_found", event_id=event_id, detail=exc.reason)

        try:
            appointment, touched_contacts = self.apply(tenant, normalized)
            self.session.commit()
        except Exception as exc:
            self.session.rollback()
            logger.exception("CRM event %s failed for tenant %s", event_id, tenant.tenant_id)
            self.ledger.mark_failed(event_id, str(exc) or exc.__class__.__name__, tenant_id=tenant.tenant_id)
            return 200, CrmWebhookResponse(status="error", event_id=event_id, detail=str(exc))

        for contact_id in touched_contacts:
            self.attribution.recalculate_safely(tenant, contact_id)

        self.ledger.mark_processed(event_id, tenant_id=tenant.tenant_id)
        return 200, CrmWebhookResponse(
            status="processed",
            event_id=event_id,
            appointment_id=appointment.id,
            action=normalized.action,
        )

    def apply(self, tenant: TenantContext, event: NormalizedAppointment) -> tuple[Appointment, list[str]]:
        """Dispatch on the CRM status; returns the appointment and contacts needing attribution."""

        existing = self.appointments.get_by_external_id(tenant, event.appointment_external_id)
        previous_contact = existing.contact_id if existing is not None else None

        action = event.action
        if action == "cancel":
            appointment = self._cancel(tenant, event, existing)
        elif action == "reschedule":
            appointment = self._reschedule(tenant, event, existing)
        elif existing is None:
            appointment = self._create(tenant, event)
        else:
            appointment = self._update(tenant, event, existing)

        self.session.flush()
        touched = [appointment.contact_id]
        if previous_contact and previous_contact != appointment.contact_id:
            touched.append(previous_contact)
        return appointment, touched

    def _create(
        self,
        tenant: TenantContext,
        event: NormalizedAppointment,
        status: AppointmentStatus | None = None,
    ) -> Appointment:
        if event.start_time is None:
            raise ValidationError(f"Appointment {event.appointment_external_id} has no start time")
        contact = self.identity.resolve_contact(
            tenant,
            ContactHints(
                email=event.contact_email,
                phone=event.contact_phone,
                name=event.contact_name,
                external_id=event.contact_external_id,
            ),
        )
        appointment = Appointment(
            tenant_id=tenant.tenant_id,
            contact_id=contact.id,
            closer_id=self._closer_id(tenant, event),
            scheduled_at=event.start_time,
            ends_at=event.end_time,
            status=status or event.appointment_status,
            external_id=event.appointment_external_id,
            calendar_external_id=event.calendar_external_id,
        )
        self._link_predecessor(tenant, event, appointment)
        self.appointments.add(appointment)
        logger.info("Created appointment %s for contact %s", event.appointment_external_id, contact.id)
        return appointment

    def _update(self, tenant: TenantContext, event: NormalizedAppointment, appointment: Appointment) -> Appointment:
        if event.start_time is not None:
            appointment.scheduled_at = event.start_time
        if event.end_time is not None:
            appointment.ends_at = event.end_time
        if event.action != "create":
            appointment.status = event.appointment_status
        if event.calendar_external_id:
            appointment.calendar_external_id = event.calendar_external_id
        closer_id = self._closer_id(tenant, event)
        if closer_id is not None:
            appointment.closer_id = closer_id
        return appointment

    def _cancel(
        self,
        tenant: TenantContext,
        event: NormalizedAppointment,
        appointment: Appointment | None,
    ) -> Appointment:
        if appointment is None:
            return self._create(tenant, event, status=AppointmentStatus.CANCELLED)
        appointment.status = AppointmentStatus.CANCELLED
        return appointment

    def _reschedule(
        self,
        tenant: TenantContext,
        event: NormalizedAppointment,
        appointment: Appointment | None,
    ) -> Appointment:
        if appointment is None:
            return self._create(tenant, event, status=AppointmentStatus.SCHEDULED)
        if event.start_time is None:
            raise ValidationError(f"Reschedule of {event.appointment_external_id} has no start time")
        appointment.scheduled_at = event.start_time
        if event.end_time is not None:
            appointment.ends_at = event.end_time
        appointment.status = AppointmentStatus.SCHEDULED
        appointment.reschedule_count = (appointment.reschedule_count or 0) + 1
        closer_id = self._closer_id(tenant, event)
        if closer_id is not None:
            appointment.closer_id = closer_id
        return appointment

    def _link_predecessor(self, tenant: TenantContext, event: NormalizedAppointment, appointment: Appointment) -> None:
        """A reschedule delivered as a new booking supersedes the booking it replaces."""

        if not event.rescheduled_from_external_id:
            return
        if event.rescheduled_from_external_id == event.appointment_external_id:
            return
        predecessor = self.appointments.get_by_external_id(tenant, event.rescheduled_from_external_id)
        if predecessor is None:
            logger.warning(
                "Reschedule source %s not found for appointment %s",
                event.rescheduled_from_external_id,
                event.appointment_external_id,
            )
            return
        appointment.rescheduled_from_id = predecessor.id
        appointment.reschedule_count = (predecessor.reschedule_count or 0) + 1
        predecessor.status = AppointmentStatus.CANCELLED

    def _closer_id(self, tenant: TenantContext, event: NormalizedAppointment) -> str | None:
        if not event.closer_external_id:
            return None
        closer = self.closers.get_by_crm_user_id(tenant, event.closer_external_id)
        if closer is None:
            logger.warning("No closer mapped to CRM user %s", event.closer_external_id)
            return None
        return closer.id


def _event_type(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("type", "eventType", "event_type"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return "appointment"
