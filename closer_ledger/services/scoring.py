"""Deterministic similarity scoring for unmatched-payment suggestions."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from difflib import SequenceMatcher

from closer_ledger.db.base import as_utc
from closer_ledger.db.models import Appointment
from closer_ledger.utils.normalize import normalize_email, normalize_phone

FUZZY_CEILING = 0.95


@dataclass(slots=True)
class ScoreComponent:
    """Represents individual heuristic contribution."""

    name: str
    weight: float
    achieved: float
    detail: str

    @property
    def contribution(self) -> float:
        normalized = max(0.0, min(self.achieved, 1.0))
        return self.weight * normalized


@dataclass(slots=True)
class MatchScore:
    """Composite score built from components."""

    total: float
    components: list[ScoreComponent]

    @property
    def confidence_label(self) -> str:
        if self.total >= 0.8:
            return "high"
        if self.total >= 0.55:
            return "medium"
        return "low"

    def reasoning_text(self) -> str:
        return "; ".join(c.detail for c in self.components if c.detail)


@dataclass(slots=True, frozen=True)
class PaymentSignals:
    """Identity fields carried by a payment."""

    email: str | None
    name: str | None
    phone: str | None
    paid_at: datetime


def similarity(left: str, right: str) -> float:
    left, right = left.strip().lower(), right.strip().lower()
    if left == right:
        return 1.0
    if not left or not right:
        return 0.0
    return SequenceMatcher(None, left, right).ratio()


def _name_component(payment_name: str | None, contact_name: str | None) -> ScoreComponent:
    if not payment_name or not contact_name:
        return ScoreComponent(name="name", weight=0.4, achieved=0.0, detail="")
    ratio = similarity(payment_name, contact_name)
    if ratio >= 0.9:
        achieved, detail = 1.0, "Name matches"
    elif ratio >= 0.7:
        achieved, detail = 0.75, f"Name similarity {ratio:.0%}"
    elif ratio >= 0.5:
        achieved, detail = 0.5, f"Name similarity {ratio:.0%}"
    else:
        achieved, detail = 0.0, f"Name similarity {ratio:.0%} (low)"
    return ScoreComponent(name="name", weight=0.4, achieved=achieved, detail=detail)


def _email_component(payment_email: str | None, contact_email: str | None) -> ScoreComponent:
    left, right = normalize_email(payment_email), normalize_email(contact_email)
    if not left or not right:
        return ScoreComponent(name="email", weight=0.3, achieved=0.0, detail="")
    if left == right:
        return ScoreComponent(name="email", weight=0.3, achieved=1.0, detail="Email matches")
    ratio = similarity(left, right)
    if ratio >= 0.8:
        return ScoreComponent(name="email", weight=0.3, achieved=0.5, detail=f"Email similarity {ratio:.0%}")
    return ScoreComponent(name="email", weight=0.3, achieved=0.0, detail="")


def _phone_component(payment_phone: str | None, contact_phone: str | None) -> ScoreComponent:
    left, right = normalize_phone(payment_phone), normalize_phone(contact_phone)
    achieved = 1.0 if left and right and left == right else 0.0
    return ScoreComponent(name="phone", weight=0.2, achieved=achieved, detail="Phone matches" if achieved else "")


def _recency_component(paid_at: datetime, scheduled_at: datetime) -> ScoreComponent:
    days = abs((as_utc(paid_at) - as_utc(scheduled_at)).total_seconds()) / 86400
    if days <= 7:
        return ScoreComponent(name="recency", weight=0.1, achieved=1.0, detail="Appointment within 7 days")
    if days <= 30:
        return ScoreComponent(name="recency", weight=0.1, achieved=0.5, detail="Appointment within 30 days")
    return ScoreComponent(name="recency", weight=0.1, achieved=0.0, detail=f"Appointment {days:.0f} days away")


def score_candidate(payment: PaymentSignals, appointment: Appointment) -> MatchScore:
    """Score how plausibly ``appointment`` is the call that produced ``payment``.

    Fuzzy scores never reach certainty; only explicit or manual links do.
    """

    contact = appointment.contact
    components = [
        _name_component(payment.name, getattr(contact, "name", None)),
        _email_component(payment.email, getattr(contact, "email", None)),
        _phone_component(payment.phone, getattr(contact, "phone", None)),
        _recency_component(payment.paid_at, appointment.scheduled_at),
    ]
    total = sum(component.contribution for component in components)
    total = round(min(total, FUZZY_CEILING), 4)
    return MatchScore(total=total, components=components)
