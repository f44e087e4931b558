"""Tenant and contact resolution for inbound events."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from closer_ledger.core.tenant import TenantContext, context_for
from closer_ledger.db.models import Appointment, Contact
from closer_ledger.repositories.closer import CloserRepository
from closer_ledger.repositories.contact import ContactRepository
from closer_ledger.repositories.tenant import TenantRepository
from closer_ledger.utils.normalize import clean_string, normalize_email, normalize_phone

from .exceptions import TenantResolutionError

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TenantHints:
    """Everything an inbound event may tell us about its owner."""

    tenant_id: str | None = None
    location_id: str | None = None
    appointment_id: str | None = None
    closer_email: str | None = None


@dataclass(slots=True, frozen=True)
class ContactHints:
    email: str | None = None
    phone: str | None = None
    name: str | None = None
    external_id: str | None = None


class IdentityResolver:
    """Determine the owning tenant and canonical contact for an event."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.tenants = TenantRepository(session)
        self.closers = CloserRepository(session)
        self.contacts = ContactRepository(session)

    def resolve_tenant(self, hints: TenantHints) -> TenantContext:
        """Resolve hints in priority order; the first usable one wins."""

        if hints.tenant_id:
            tenant = self.tenants.get(hints.tenant_id)
            if tenant is None:
                raise TenantResolutionError(f"Unknown tenant {hints.tenant_id}")
            return context_for(tenant)

        if hints.location_id:
            tenant = self.tenants.get_by_location_id(hints.location_id)
            if tenant is not None:
                return context_for(tenant)

        if hints.appointment_id:
            appointment = self.session.get(Appointment, hints.appointment_id)
            if appointment is not None:
                return context_for(self.tenants.get(appointment.tenant_id))

        closer_email = normalize_email(hints.closer_email)
        if closer_email:
            tenant_ids = self.closers.tenant_ids_for_email(closer_email)
            if len(tenant_ids) == 1:
                return context_for(self.tenants.get(tenant_ids[0]))
            if len(tenant_ids) > 1:
                raise TenantResolutionError(f"Closer email {closer_email} belongs to several tenants")

        raise TenantResolutionError("Unable to determine tenant for event")

    def resolve_contact(self, tenant: TenantContext, hints: ContactHints) -> Contact:
        """Find the contact by external id, email, then phone, or create one.

        Existing contacts only gain fields they were missing.
        """

        email = normalize_email(hints.email)
        phone = normalize_phone(hints.phone)
        name = clean_string(hints.name)
        external_id = clean_string(hints.external_id)

        contact = None
        if external_id:
            contact = self.contacts.get_by_external_id(tenant, external_id)
        if contact is None and email:
            contact = self.contacts.get_by_email(tenant, email)
        if contact is None and phone:
            contact = self.contacts.get_by_phone(tenant, phone)

        if contact is None:
            contact = Contact(
                tenant_id=tenant.tenant_id,
                email=email,
                phone=phone,
                name=name,
                external_id=external_id,
            )
            self.contacts.add(contact)
            self.session.flush()
            logger.info("Created contact %s for tenant %s", contact.id, tenant.tenant_id)
            return contact

        if email and not contact.email:
            contact.email = email
        if phone and not contact.phone:
            contact.phone = phone
        if name and not contact.name:
            contact.name = name
        if external_id and not contact.external_id:
            contact.external_id = external_id
        self.session.flush()
        return contact
