"""Payment webhook processing: ledger, identity, matching and commission in one request."""
from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from closer_ledger.core.settings import Settings, get_settings
from closer_ledger.core.tenant import TenantContext, context_for
from closer_ledger.db.base import utcnow
from closer_ledger.db.models import Sale, SaleStatus, Tenant, UnmatchedPayment, UnmatchedPaymentStatus
from closer_ledger.repositories.closer import CloserRepository
from closer_ledger.repositories.sale import SaleRepository
from closer_ledger.schemas.webhook import PaymentWebhookPayload, PaymentWebhookResponse
from closer_ledger.utils.normalize import (
    clean_string,
    normalize_email,
    normalize_phone,
    parse_amount,
    parse_datetime,
)

from .commission_service import CommissionService
from .event_ledger import EventLedger
from .exceptions import AuthenticationError, ConflictError, TenantResolutionError, ValidationError
from .identity import ContactHints, IdentityResolver, TenantHints
from .matching import AppointmentMatcher, MatchQuery, MatchResult, SuggestionFinder
from .scoring import PaymentSignals

logger = logging.getLogger(__name__)

REFUND_MARKERS = ("refund",)
DEFAULT_PROCESSOR = "payment"


@dataclass(slots=True, frozen=True)
class ParsedPayment:
    processor: str
    payment_id: str
    amount: Decimal | None
    currency: str
    customer_email: str | None
    customer_name: str | None
    closer_email: str | None
    appointment_hint: str | None
    paid_at: datetime
    contact_name: str | None
    contact_phone: str | None
    tenant_hint: str | None
    is_refund: bool


def parse_payment(body: dict[str, Any]) -> ParsedPayment:
    """Normalize a raw payment payload, raising ``ValidationError`` on missing essentials."""

    try:
        payload = PaymentWebhookPayload.model_validate(body)
    except PydanticValidationError as exc:
        raise ValidationError(f"Malformed payment payload: {exc.errors()[0]['msg']}") from exc

    status = (clean_string(payload.status) or "").lower()
    event_type = (clean_string(payload.event_type) or "").lower()
    is_refund = any(marker in status or marker in event_type for marker in REFUND_MARKERS)

    processor = clean_string(payload.processor)
    payment_id = clean_string(payload.payment_id)
    amount = parse_amount(payload.amount)
    customer_email = normalize_email(payload.customer_email)

    if is_refund:
        if not processor or not payment_id:
            raise ValidationError("processor and paymentId are required")
    elif not processor or not payment_id or amount is None or not customer_email:
        raise ValidationError("processor, paymentId, amount, and customerEmail are required")
    if amount is not None and amount < 0:
        raise ValidationError("amount must not be negative")

    currency = (clean_string(payload.currency) or "USD").upper()
    if len(currency) != 3:
        raise ValidationError(f"Invalid currency {currency!r}")

    extra = payload.model_extra or {}
    metadata = payload.metadata or {}
    tenant_hint = (
        clean_string(payload.company_id)
        or clean_string(extra.get("company"))
        or clean_string(metadata.get("companyId") or metadata.get("company_id") or metadata.get("company"))
    )

    return ParsedPayment(
        processor=processor,
        payment_id=payment_id,
        amount=amount,
        currency=currency,
        customer_email=customer_email,
        customer_name=clean_string(payload.customer_name),
        closer_email=normalize_email(payload.closer_email),
        appointment_hint=clean_string(payload.appointment_id),
        paid_at=parse_datetime(payload.paid_at) or utcnow(),
        contact_name=clean_string(payload.contact_name),
        contact_phone=normalize_phone(payload.contact_phone),
        tenant_hint=tenant_hint,
        is_refund=is_refund,
    )


def response_for_sale(sale: Sale, status: str) -> PaymentWebhookResponse:
    return PaymentWebhookResponse(
        status=status,
        matched=sale.appointment_id is not None,
        sale_id=sale.id,
        appointment_id=sale.appointment_id,
        unmatched_payment_id=sale.unmatched_payment.id if sale.unmatched_payment else None,
        commission_id=sale.commission.id if sale.commission else None,
        match_strategy=sale.matched_by,
        match_confidence=float(sale.match_confidence) if sale.match_confidence is not None else None,
    )


class PaymentWebhookService:
    """Turn one processor notification into a Sale, a match and possibly a Commission."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.ledger = EventLedger(session)
        self.identity = IdentityResolver(session)
        self.sales = SaleRepository(session)
        self.closers = CloserRepository(session)
        self.matcher = AppointmentMatcher(session, candidate_limit=self.settings.match_candidate_limit)
        self.suggestions = SuggestionFinder(
            session,
            limit=self.settings.match_candidate_limit,
            lookback_days=self.settings.suggestion_lookback_days,
        )

    def handle(self, body: Any, provided_secret: str | None = None) -> PaymentWebhookResponse:
        self._authenticate(provided_secret)
        if not isinstance(body, dict):
            raise ValidationError("Payment payload must be a JSON object")

        processor = clean_string(body.get("processor")) or DEFAULT_PROCESSOR
        event_type = clean_string(body.get("eventType")) or clean_string(body.get("status")) or "payment"
        event_id = self.ledger.record(processor, event_type, body)

        try:
            payment = parse_payment(body)
        except ValidationError as exc:
            self.ledger.mark_failed(event_id, str(exc))
            raise

        if payment.is_refund:
            return self._apply_refund(event_id, payment)

        existing = self.sales.get_by_external_id(payment.payment_id)
        if existing is not None:
            self.ledger.mark_processed(event_id, tenant_id=existing.tenant_id)
            logger.info("Duplicate delivery of payment %s", payment.payment_id)
            return response_for_sale(existing, "duplicate")

        try:
            tenant = self.identity.resolve_tenant(
                TenantHints(
                    tenant_id=payment.tenant_hint,
                    appointment_id=payment.appointment_hint,
                    closer_email=payment.closer_email,
                )
            )
        except TenantResolutionError as exc:
            self.ledger.mark_failed(event_id, f"Tenant not resolved: {exc.reason}")
            raise

        try:
            response = self._record_sale(tenant, payment, body)
        except IntegrityError as exc:
            self.session.rollback()
            existing = self.sales.get_by_external_id(payment.payment_id)
            if existing is None:
                self.ledger.mark_failed(event_id, "Database constraint violated while recording sale")
                raise ConflictError("Failed to record payment due to database constraint") from exc
            self.ledger.mark_processed(event_id, tenant_id=existing.tenant_id)
            logger.info("Concurrent duplicate delivery of payment %s", payment.payment_id)
            return response_for_sale(existing, "duplicate")
        except Exception as exc:
            self.session.rollback()
            logger.exception("Payment %s failed", payment.payment_id)
            self.ledger.mark_failed(event_id, str(exc) or exc.__class__.__name__, tenant_id=tenant.tenant_id)
            raise

        self.ledger.mark_processed(event_id, tenant_id=tenant.tenant_id)
        return response

    def _authenticate(self, provided_secret: str | None) -> None:
        expected = self.settings.payment_webhook_secret
        if not expected:
            return
        if provided_secret is None or not hmac.compare_digest(provided_secret, expected):
            raise AuthenticationError("Invalid webhook secret")

    def _record_sale(self, tenant: TenantContext, payment: ParsedPayment, body: dict) -> PaymentWebhookResponse:
        closer = None
        if payment.closer_email:
            closer = self.closers.get_by_email(tenant, payment.closer_email)
            if closer is None:
                logger.warning("Closer %s not found in tenant %s", payment.closer_email, tenant.tenant_id)

        contact = self.identity.resolve_contact(
            tenant,
            ContactHints(
                email=payment.customer_email,
                phone=payment.contact_phone,
                name=payment.contact_name or payment.customer_name,
            ),
        )
        result = self.matcher.match(
            tenant,
            MatchQuery(
                contact_id=contact.id,
                email=payment.customer_email,
                phone=payment.contact_phone,
                closer_id=closer.id if closer else None,
                appointment_hint=payment.appointment_hint,
            ),
        )

        sale = Sale(
            tenant_id=tenant.tenant_id,
            external_id=payment.payment_id,
            processor=payment.processor,
            amount=payment.amount,
            currency=payment.currency,
            status=SaleStatus.PAID,
            customer_email=payment.customer_email,
            customer_name=payment.customer_name,
            paid_at=payment.paid_at,
            contact_id=contact.id,
            rep_id=closer.id if closer else None,
            manually_matched=False,
            raw_data=body,
        )
        self.sales.add(sale)
        self.session.flush()

        if isinstance(result, MatchResult):
            appointment = result.appointment
            rep = closer or appointment.closer
            sale.appointment_id = appointment.id
            sale.contact_id = appointment.contact_id
            sale.rep_id = rep.id if rep else None
            sale.matched_by = result.strategy
            sale.match_confidence = result.confidence
            if appointment.sale_id is None:
                appointment.sale_id = sale.id
            CommissionService(self.session, tenant).create_for_sale(sale, rep, released=True)
            status = "matched"
            logger.info(
                "Payment %s matched to appointment %s via %s (%s)",
                payment.payment_id,
                appointment.id,
                result.strategy,
                result.confidence,
            )
        else:
            suggestions = self.suggestions.suggest(
                tenant,
                PaymentSignals(
                    email=payment.customer_email,
                    name=payment.contact_name or payment.customer_name,
                    phone=payment.contact_phone,
                    paid_at=payment.paid_at,
                ),
            )
            self.session.add(
                UnmatchedPayment(
                    tenant_id=tenant.tenant_id,
                    sale_id=sale.id,
                    suggested_matches=suggestions,
                    status=UnmatchedPaymentStatus.PENDING,
                )
            )
            status = "unmatched"
            logger.info("Payment %s unmatched: %s", payment.payment_id, result.reason)

        self.session.commit()
        self.session.refresh(sale)
        return response_for_sale(sale, status)

    def _apply_refund(self, event_id: str, payment: ParsedPayment) -> PaymentWebhookResponse:
        sale = self.sales.get_by_external_id(payment.payment_id)
        if sale is None:
            message = f"Refund for unknown payment {payment.payment_id}"
            self.ledger.mark_failed(event_id, message)
            return PaymentWebhookResponse(status="ignored", error=message)

        tenant = context_for(self.session.get(Tenant, sale.tenant_id))
        if sale.status != SaleStatus.REFUNDED:
            try:
                sale.status = SaleStatus.REFUNDED
                CommissionService(self.session, tenant).request_clawback(sale)
                self.session.commit()
            except Exception as exc:
                self.session.rollback()
                logger.exception("Refund of payment %s failed", payment.payment_id)
                self.ledger.mark_failed(event_id, str(exc) or exc.__class__.__name__, tenant_id=tenant.tenant_id)
                raise
            logger.info("Sale %s refunded", sale.id)
        self.ledger.mark_processed(event_id, tenant_id=tenant.tenant_id)
        return response_for_sale(sale, "refunded")
