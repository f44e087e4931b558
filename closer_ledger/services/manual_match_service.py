"""Admin resolution of the unmatched payment queue."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.base import utcnow
from closer_ledger.db.models import (
    Appointment,
    Closer,
    Commission,
    SaleStatus,
    UnmatchedPayment,
    UnmatchedPaymentStatus,
)
from closer_ledger.repositories.appointment import AppointmentRepository
from closer_ledger.repositories.sale import SaleRepository
from closer_ledger.repositories.unmatched_payment import UnmatchedPaymentRepository
from closer_ledger.schemas.unmatched_payment import (
    BulkMatchItemResult,
    BulkMatchRequest,
    BulkMatchResponse,
    RematchResponse,
    SaleRead,
    UnmatchedPaymentRead,
)
from closer_ledger.utils.normalize import clean_string

from .commission_service import CommissionService
from .exceptions import ConflictError, NotFoundError, ServiceError
from .matching import AppointmentMatcher, MatchQuery, MatchResult

logger = logging.getLogger(__name__)

MANUAL_STRATEGY = "manual"
MANUAL_CONFIDENCE = Decimal("1.0")


class ManualMatchService:
    """Link queued payments to appointments and create their commissions."""

    def __init__(self, session: Session, tenant: TenantContext) -> None:
        self.session = session
        self.tenant = tenant
        self.unmatched = UnmatchedPaymentRepository(session)
        self.sales = SaleRepository(session)
        self.appointments = AppointmentRepository(session)
        self.commissions = CommissionService(session, tenant)

    def list_queue(
        self,
        status: UnmatchedPaymentStatus | None = UnmatchedPaymentStatus.PENDING,
        offset: int = 0,
        limit: int = 100,
    ) -> list[UnmatchedPaymentRead]:
        rows = self.unmatched.list_by_status(self.tenant, status=status, offset=offset, limit=limit)
        return [UnmatchedPaymentRead.model_validate(row) for row in rows]

    def list_sales(self, matched: bool | None = None, offset: int = 0, limit: int = 100) -> list[SaleRead]:
        rows = self.sales.list_filtered(self.tenant, matched=matched, offset=offset, limit=limit)
        return [SaleRead.model_validate(row) for row in rows]

    def match_one(self, unmatched_id: str, appointment_id: str, user_id: str | None = None) -> BulkMatchItemResult:
        entry = self._pending_entry(unmatched_id)
        appointment = self._appointment(appointment_id)
        commission = self._link(entry, appointment, user_id)
        self.session.commit()
        return BulkMatchItemResult(
            payment_id=unmatched_id,
            appointment_id=appointment_id,
            success=True,
            sale_id=entry.sale_id,
            commission_id=commission.id if commission else None,
        )

    def bulk_match(self, payload: BulkMatchRequest, user_id: str | None = None) -> BulkMatchResponse:
        """Apply each pairing in its own transaction; failures are reported, not raised."""

        results: list[BulkMatchItemResult] = []
        for item in payload.matches:
            try:
                results.append(self.match_one(item.payment_id, item.appointment_id, user_id))
            except ServiceError as exc:
                self.session.rollback()
                logger.warning("Bulk match of %s failed: %s", item.payment_id, exc)
                results.append(
                    BulkMatchItemResult(
                        payment_id=item.payment_id,
                        appointment_id=item.appointment_id,
                        success=False,
                        error=str(exc),
                    )
                )
            except Exception as exc:
                self.session.rollback()
                logger.exception("Bulk match of %s failed unexpectedly", item.payment_id)
                results.append(
                    BulkMatchItemResult(
                        payment_id=item.payment_id,
                        appointment_id=item.appointment_id,
                        success=False,
                        error=str(exc) or exc.__class__.__name__,
                    )
                )

        successful = sum(1 for result in results if result.success)
        return BulkMatchResponse(
            results=results,
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
        )

    def rematch_pending(self) -> RematchResponse:
        """Re-run the automatic cascade over the pending queue."""

        matcher = AppointmentMatcher(self.session)
        entries = self.unmatched.list_by_status(self.tenant, status=UnmatchedPaymentStatus.PENDING, limit=1000)
        matched_sale_ids: list[str] = []
        failed = 0
        for entry in entries:
            sale = entry.sale
            raw = sale.raw_data or {}
            query = MatchQuery(
                contact_id=sale.contact_id,
                email=sale.customer_email,
                phone=clean_string(raw.get("contactPhone")),
                closer_id=sale.rep_id,
                appointment_hint=clean_string(raw.get("appointmentId")),
                status=sale.status,
            )
            try:
                result = matcher.match(self.tenant, query)
                if not isinstance(result, MatchResult):
                    continue
                self._link(
                    entry,
                    result.appointment,
                    user_id=None,
                    strategy=result.strategy,
                    confidence=result.confidence,
                    manual=False,
                )
                self.session.commit()
            except Exception:
                self.session.rollback()
                logger.exception("Rematch of sale %s failed", sale.id)
                failed += 1
                continue
            matched_sale_ids.append(sale.id)
        logger.info("Rematch for tenant %s linked %s of %s", self.tenant.tenant_id, len(matched_sale_ids), len(entries))
        return RematchResponse(
            examined=len(entries),
            matched=len(matched_sale_ids),
            failed=failed,
            sale_ids=matched_sale_ids,
        )

    def _link(
        self,
        entry: UnmatchedPayment,
        appointment: Appointment,
        user_id: str | None,
        strategy: str = MANUAL_STRATEGY,
        confidence: Decimal = MANUAL_CONFIDENCE,
        manual: bool = True,
    ) -> Commission | None:
        sale = entry.sale
        if sale.status == SaleStatus.REFUNDED:
            raise ConflictError("Refunded payments cannot be matched")
        if sale.appointment_id is not None:
            raise ConflictError("Payment is already matched")

        rep: Closer | None = appointment.closer if manual else (sale.rep or appointment.closer)
        sale.appointment_id = appointment.id
        sale.contact_id = appointment.contact_id
        sale.rep_id = rep.id if rep else None
        sale.matched_by = strategy
        sale.match_confidence = confidence
        sale.manually_matched = manual
        sale.matched_by_user_id = user_id
        if appointment.sale_id is None:
            appointment.sale_id = sale.id

        commission = self.commissions.create_for_sale(sale, rep, released=True)

        entry.status = UnmatchedPaymentStatus.MATCHED
        entry.reviewed_at = utcnow()
        entry.reviewed_by_user_id = user_id
        logger.info("Sale %s linked to appointment %s (%s)", sale.id, appointment.id, strategy)
        return commission

    def _pending_entry(self, payment_id: str) -> UnmatchedPayment:
        entry = self.unmatched.get_for_tenant(self.tenant, payment_id)
        if entry is None:
            entry = self.unmatched.get_by_sale_external_id(self.tenant, payment_id)
        if entry is None:
            raise NotFoundError("Payment not found")
        if entry.status != UnmatchedPaymentStatus.PENDING:
            raise ConflictError("Payment already matched")
        return entry

    def _appointment(self, appointment_id: str) -> Appointment:
        appointment = self.appointments.get_for_tenant(self.tenant, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment
