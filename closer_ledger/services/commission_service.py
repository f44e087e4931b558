"""Commission computation and release lifecycle."""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from closer_ledger.core.settings import get_settings
from closer_ledger.core.tenant import TenantContext
from closer_ledger.db.base import utcnow
from closer_ledger.db.models import Closer, Commission, ReleaseStatus, Sale
from closer_ledger.repositories.commission import CommissionRepository
from closer_ledger.schemas.commission import CommissionOverrideRequest, CommissionRead

from .exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
RELEASABLE = (ReleaseStatus.PENDING, ReleaseStatus.PARTIAL)


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def resolve_rate(closer: Closer, fallback_rate: Decimal | None, default_rate: float) -> Decimal:
    """Closer override, then role default, then tenant fallback, then the global default."""

    if closer.custom_commission_rate is not None:
        return Decimal(closer.custom_commission_rate)
    if closer.commission_role is not None:
        return Decimal(closer.commission_role.default_rate)
    if fallback_rate is not None:
        return Decimal(fallback_rate)
    return Decimal(str(default_rate))


class CommissionService:
    """Create commissions for sales and drive their release state machine."""

    def __init__(self, session: Session, tenant: TenantContext) -> None:
        self.session = session
        self.tenant = tenant
        self.commissions = CommissionRepository(session)

    def create_for_sale(self, sale: Sale, closer: Closer | None, released: bool = True) -> Commission | None:
        """Build the sale's commission without committing.

        Returns ``None`` when no closer is assigned; that sale earns nothing.
        An existing commission for the sale is returned unchanged.
        """

        if closer is None:
            logger.info("Sale %s has no closer; no commission created", sale.id)
            return None
        self.tenant.require_owned(closer, "Closer")

        existing = self.commissions.get_by_sale_id(self.tenant, sale.id)
        if existing is not None:
            return existing

        rate = resolve_rate(closer, self.tenant.fallback_commission_rate, get_settings().default_commission_rate)
        gross = Decimal(sale.amount)
        total = quantize_money(gross * rate)
        now = utcnow()
        commission = Commission(
            tenant_id=self.tenant.tenant_id,
            sale_id=sale.id,
            rep_id=closer.id,
            gross_amount=gross,
            percentage=rate,
            amount=total,
            total_amount=total,
            released_amount=total if released else Decimal("0"),
            release_status=ReleaseStatus.RELEASED if released else ReleaseStatus.PENDING,
            released_at=now if released else None,
        )
        self.commissions.add(commission)
        self.session.flush()
        logger.info("Commission %s for sale %s at rate %s = %s", commission.id, sale.id, rate, total)
        return commission

    def request_clawback(self, sale: Sale) -> Commission | None:
        """Flag the sale's commission for admin clawback review; payouts stay untouched."""

        commission = self.commissions.get_by_sale_id(self.tenant, sale.id)
        if commission is None:
            return None
        if commission.clawback_requested_at is None:
            commission.clawback_requested_at = utcnow()
            logger.warning("Clawback requested for commission %s after refund of sale %s", commission.id, sale.id)
        return commission

    def list_commissions(
        self,
        release_status: ReleaseStatus | None = None,
        rep_id: str | None = None,
        clawback_only: bool = False,
        offset: int = 0,
        limit: int = 100,
    ) -> list[CommissionRead]:
        rows = self.commissions.list_filtered(
            self.tenant,
            release_status=release_status,
            rep_id=rep_id,
            clawback_only=clawback_only,
            offset=offset,
            limit=limit,
        )
        return [CommissionRead.model_validate(row) for row in rows]

    def get(self, commission_id: str) -> CommissionRead:
        return CommissionRead.model_validate(self._get(commission_id))

    def release(self, commission_id: str, amount: Decimal | None = None) -> CommissionRead:
        """Release the remaining payable balance, or ``amount`` of it.

        A released commission whose override raised the payable amount can still
        release the difference; it stays ``released``.
        """

        commission = self._get(commission_id)
        payable = Decimal(commission.payable_amount)
        already = Decimal(commission.released_amount)
        remaining = payable - already
        topping_up = commission.release_status == ReleaseStatus.RELEASED and remaining > 0
        if commission.release_status not in RELEASABLE and not topping_up:
            raise ConflictError(f"Commission in status {commission.release_status.value} cannot be released")

        if amount is None:
            amount = remaining
        amount = quantize_money(Decimal(amount))
        if amount <= 0 and remaining > 0:
            raise ValidationError("Release amount must be positive")

        commission.released_amount = min(already + amount, payable)
        if commission.released_amount >= payable:
            commission.release_status = ReleaseStatus.RELEASED
        elif commission.release_status == ReleaseStatus.PENDING:
            commission.release_status = ReleaseStatus.PARTIAL
        commission.released_at = utcnow()
        self.session.commit()
        self.session.refresh(commission)
        return CommissionRead.model_validate(commission)

    def mark_paid(self, commission_id: str) -> CommissionRead:
        commission = self._get(commission_id)
        if commission.release_status != ReleaseStatus.RELEASED:
            raise ConflictError("Only released commissions can be marked paid")
        commission.release_status = ReleaseStatus.PAID
        commission.paid_at = utcnow()
        self.session.commit()
        self.session.refresh(commission)
        return CommissionRead.model_validate(commission)

    def override(self, commission_id: str, payload: CommissionOverrideRequest) -> CommissionRead:
        """Replace the payable amount; the computed total and released money stay as they are.

        The release status only moves forward: a partial commission whose released
        amount now covers the override becomes released.
        """

        commission = self._get(commission_id)
        if commission.release_status == ReleaseStatus.PAID:
            raise ConflictError("Paid commissions cannot be overridden")

        amount = quantize_money(Decimal(str(payload.amount)))
        released = Decimal(commission.released_amount)
        if amount < released:
            raise ValidationError(
                f"Override {amount} is below the {released} already released"
            )

        commission.override_amount = amount
        commission.override_reason = payload.reason
        commission.override_by_user_id = payload.user_id
        if commission.release_status == ReleaseStatus.PARTIAL and released >= amount:
            commission.release_status = ReleaseStatus.RELEASED
        self.session.commit()
        self.session.refresh(commission)
        logger.info("Commission %s overridden to %s: %s", commission.id, amount, payload.reason)
        return CommissionRead.model_validate(commission)

    def _get(self, commission_id: str) -> Commission:
        commission = self.commissions.get_for_tenant(self.tenant, commission_id)
        if commission is None:
            raise NotFoundError("Commission not found")
        return commission
