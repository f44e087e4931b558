"""Appointment matching cascade for inbound payments.

The matcher walks an ordered list of strategies and stops at the first one
that yields an appointment. It only reads; callers persist the outcome.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Protocol, Sequence

from sqlalchemy.orm import Session

from closer_ledger.core.settings import get_settings
from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.models import Appointment, SaleStatus
from closer_ledger.repositories.appointment import AppointmentRepository
from closer_ledger.repositories.contact import ContactRepository
from closer_ledger.utils.normalize import normalize_email, normalize_phone

from .scoring import PaymentSignals, score_candidate

EXPLICIT_CONFIDENCE = Decimal("1.0")
CLOSER_CONFIDENCE = Decimal("1.0")
OTHER_CLOSER_CONFIDENCE = Decimal("0.6")
CONTACT_ONLY_CONFIDENCE = Decimal("0.5")
SUGGESTION_FLOOR = 0.2


@dataclass(slots=True, frozen=True)
class MatchQuery:
    """What the matcher knows about a payment."""

    contact_id: str | None = None
    email: str | None = None
    phone: str | None = None
    closer_id: str | None = None
    appointment_hint: str | None = None
    status: SaleStatus = SaleStatus.PAID

    @property
    def has_identity(self) -> bool:
        return bool(self.contact_id or self.email or self.phone)


@dataclass(slots=True, frozen=True)
class MatchResult:
    appointment: Appointment
    confidence: Decimal
    strategy: str


@dataclass(slots=True, frozen=True)
class NoMatch:
    reason: str


class MatchStrategy(Protocol):
    name: str

    def attempt_match(self, tenant: TenantContext, query: MatchQuery) -> MatchResult | None:
        ...


class _CandidateSource:
    """Most-recent-first appointments of the payer.

    With a resolved contact, the payer is that contact plus duplicates sharing its
    email; a shared phone alone never widens the search. Without one, every contact
    sharing the payer's email or phone is searched.
    """

    def __init__(self, session: Session, limit: int) -> None:
        self.appointments = AppointmentRepository(session)
        self.contacts = ContactRepository(session)
        self.limit = limit

    def candidates(self, tenant: TenantContext, query: MatchQuery) -> list[Appointment]:
        email = normalize_email(query.email)
        if query.contact_id:
            contact_ids = self.contacts.ids_matching(tenant, email=email)
            contact_ids.add(query.contact_id)
        else:
            contact_ids = self.contacts.ids_matching(tenant, email=email, phone=normalize_phone(query.phone))
        return self.appointments.list_recent_for_contacts(tenant, contact_ids, limit=self.limit)


class ExplicitHintStrategy:
    """Caller supplied the appointment id (internal or CRM external id)."""

    name = "appointment_id"

    def __init__(self, session: Session) -> None:
        self.appointments = AppointmentRepository(session)

    def attempt_match(self, tenant: TenantContext, query: MatchQuery) -> MatchResult | None:
        if not query.appointment_hint:
            return None
        appointment = self.appointments.get_for_tenant(tenant, query.appointment_hint)
        if appointment is None:
            appointment = self.appointments.get_by_external_id(tenant, query.appointment_hint)
        if appointment is None:
            return None
        return MatchResult(appointment=appointment, confidence=EXPLICIT_CONFIDENCE, strategy=self.name)


class CloserContactStrategy:
    """Prefer the latest candidate run by the paying closer, else the latest overall."""

    name = "closer_contact"

    def __init__(self, source: _CandidateSource) -> None:
        self.source = source

    def attempt_match(self, tenant: TenantContext, query: MatchQuery) -> MatchResult | None:
        if not query.closer_id:
            return None
        candidates = self.source.candidates(tenant, query)
        if not candidates:
            return None
        for appointment in candidates:
            if appointment.closer_id == query.closer_id:
                return MatchResult(appointment=appointment, confidence=CLOSER_CONFIDENCE, strategy=self.name)
        return MatchResult(appointment=candidates[0], confidence=OTHER_CLOSER_CONFIDENCE, strategy=self.name)


class ContactOnlyStrategy:
    name = "contact"

    def __init__(self, source: _CandidateSource) -> None:
        self.source = source

    def attempt_match(self, tenant: TenantContext, query: MatchQuery) -> MatchResult | None:
        candidates = self.source.candidates(tenant, query)
        if not candidates:
            return None
        return MatchResult(appointment=candidates[0], confidence=CONTACT_ONLY_CONFIDENCE, strategy=self.name)


class AppointmentMatcher:
    """Run the matching cascade for one tenant-scoped payment."""

    def __init__(
        self,
        session: Session,
        strategies: Sequence[MatchStrategy] | None = None,
        candidate_limit: int | None = None,
    ) -> None:
        limit = candidate_limit or get_settings().match_candidate_limit
        if strategies is None:
            source = _CandidateSource(session, limit)
            strategies = (
                ExplicitHintStrategy(session),
                CloserContactStrategy(source),
                ContactOnlyStrategy(source),
            )
        self.strategies = tuple(strategies)

    def match(self, tenant: TenantContext, query: MatchQuery) -> MatchResult | NoMatch:
        if query.status == SaleStatus.REFUNDED:
            return NoMatch(reason="refunded payments are never matched")
        if not query.has_identity and not query.appointment_hint:
            return NoMatch(reason="no contact identity supplied")
        for strategy in self.strategies:
            result = strategy.attempt_match(tenant, query)
            if result is not None:
                return result
        return NoMatch(reason="no candidate appointments")


class SuggestionFinder:
    """Rank plausible appointments for a payment the cascade could not place."""

    def __init__(self, session: Session, limit: int | None = None, lookback_days: int | None = None) -> None:
        settings = get_settings()
        self.appointments = AppointmentRepository(session)
        self.contacts = ContactRepository(session)
        self.limit = limit or settings.match_candidate_limit
        self.lookback = timedelta(days=lookback_days or settings.suggestion_lookback_days)

    def suggest(self, tenant: TenantContext, signals: PaymentSignals) -> list[dict]:
        contact_ids = self.contacts.ids_matching(
            tenant,
            email=normalize_email(signals.email),
            phone=normalize_phone(signals.phone),
        )
        if signals.name:
            tokens = [word for word in signals.name.lower().split() if len(word) > 2] or [signals.name[:3]]
            contact_ids.update(c.id for c in self.contacts.search_by_name_tokens(tenant, tokens))
        if not contact_ids:
            return []

        since: datetime = signals.paid_at - self.lookback
        appointments = self.appointments.list_recent_for_contacts(tenant, contact_ids, limit=50, since=since)
        scored = []
        for appointment in appointments:
            score = score_candidate(signals, appointment)
            if score.total < SUGGESTION_FLOOR:
                continue
            scored.append((score, appointment))
        scored.sort(key=lambda item: item[0].total, reverse=True)
        return [self._serialize(score, appointment) for score, appointment in scored[: self.limit]]

    @staticmethod
    def _serialize(score, appointment: Appointment) -> dict:
        return {
            "appointment_id": appointment.id,
            "contact_id": appointment.contact_id,
            "contact_name": appointment.contact.name if appointment.contact else None,
            "closer_id": appointment.closer_id,
            "scheduled_at": appointment.scheduled_at.isoformat(),
            "confidence": score.total,
            "reason": score.reasoning_text(),
        }
