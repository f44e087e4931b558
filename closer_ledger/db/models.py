"""ORM model definitions for the closer commission ledger."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

DELETE_CASCADE = "all, delete-orphan"

UUID_STR = String(36)
CURRENCY_CODE = String(3)
DEFAULT_CURRENCY = "USD"
MONEY = Numeric(18, 2)
RATE = Numeric(5, 4)


def _enum(enum_cls: type[Enum], name: str) -> SQLEnum:
    # Persist the lowercase values; external callers depend on them.
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class AppointmentStatus(str, Enum):
    """Lifecycle of a scheduled call."""

    SCHEDULED = "scheduled"
    SHOWED = "showed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"
    SIGNED = "signed"


class InclusionFlag(str, Enum):
    """Whether an appointment is the countable member of its duplicate cluster."""

    INCLUDED = "included"
    EXCLUDED = "excluded"


class SaleStatus(str, Enum):
    """Payment state reported by the processor."""

    PAID = "paid"
    REFUNDED = "refunded"


class UnmatchedPaymentStatus(str, Enum):
    """Review queue state of an unmatched payment."""

    PENDING = "pending"
    MATCHED = "matched"


class ReleaseStatus(str, Enum):
    """Commission payout lifecycle."""

    PENDING = "pending"
    PARTIAL = "partial"
    RELEASED = "released"
    PAID = "paid"


class Tenant(Base, TimestampMixin):
    """Tenant represents one company whose ledger is isolated from the others."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    crm_location_id: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    fallback_commission_rate: Mapped[Decimal | None] = mapped_column(RATE, nullable=True)

    closers: Mapped[list["Closer"]] = relationship("Closer", back_populates="tenant", cascade=DELETE_CASCADE)
    contacts: Mapped[list["Contact"]] = relationship("Contact", back_populates="tenant", cascade=DELETE_CASCADE)


class TenantScopedMixin(TimestampMixin):
    """Mixin for tenant-scoped entities."""

    tenant_id: Mapped[str] = mapped_column(UUID_STR, ForeignKey("tenant.id", ondelete="cascade"), nullable=False, index=True)


class CommissionRole(TenantScopedMixin, Base):
    """Named commission tier carrying a default rate."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    default_rate: Mapped[Decimal] = mapped_column(RATE, nullable=False)

    closers: Mapped[list["Closer"]] = relationship("Closer", back_populates="commission_role")

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_commission_role_name_per_tenant"),
    )


class Closer(TenantScopedMixin, Base):
    """Sales rep who runs calls and earns commission."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    crm_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    custom_commission_rate: Mapped[Decimal | None] = mapped_column(RATE, nullable=True)
    commission_role_id: Mapped[str | None] = mapped_column(
        UUID_STR, ForeignKey("commissionrole.id", ondelete="set null"), nullable=True
    )

    tenant: Mapped[Tenant] = relationship("Tenant", back_populates="closers")
    commission_role: Mapped[CommissionRole | None] = relationship("CommissionRole", back_populates="closers")

    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_closer_email_per_tenant"),
        Index("ix_closer_crm_user", "tenant_id", "crm_user_id"),
    )


class Contact(TenantScopedMixin, Base):
    """Prospect or customer seen through the CRM or a payment."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    tenant: Mapped[Tenant] = relationship("Tenant", back_populates="contacts")
    appointments: Mapped[list["Appointment"]] = relationship("Appointment", back_populates="contact")

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_contact_external_id"),
        Index("ix_contact_email", "tenant_id", "email"),
        Index("ix_contact_phone", "tenant_id", "phone"),
    )


class Appointment(TenantScopedMixin, Base):
    """Scheduled sales call for a contact."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    contact_id: Mapped[str] = mapped_column(UUID_STR, ForeignKey("contact.id", ondelete="cascade"), nullable=False)
    closer_id: Mapped[str | None] = mapped_column(UUID_STR, ForeignKey("closer.id", ondelete="set null"), nullable=True)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[AppointmentStatus] = mapped_column(
        _enum(AppointmentStatus, "appointment_status"), default=AppointmentStatus.SCHEDULED, nullable=False
    )
    external_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    calendar_external_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    rescheduled_from_id: Mapped[str | None] = mapped_column(
        UUID_STR, ForeignKey("appointment.id", ondelete="set null"), nullable=True
    )
    reschedule_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Plain column: Sale already references Appointment, a second FK would form a cycle.
    sale_id: Mapped[str | None] = mapped_column(UUID_STR, nullable=True)
    inclusion_flag: Mapped[InclusionFlag | None] = mapped_column(
        _enum(InclusionFlag, "inclusion_flag"), nullable=True
    )

    contact: Mapped[Contact] = relationship("Contact", back_populates="appointments")
    closer: Mapped[Closer | None] = relationship("Closer")
    rescheduled_from: Mapped["Appointment | None"] = relationship("Appointment", remote_side="Appointment.id")

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_appointment_external_id"),
        Index("ix_appointment_contact_time", "tenant_id", "contact_id", "scheduled_at"),
    )


class Sale(TenantScopedMixin, Base):
    """Payment reported by a processor webhook."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    external_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    processor: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(CURRENCY_CODE, nullable=False, default=DEFAULT_CURRENCY)
    status: Mapped[SaleStatus] = mapped_column(_enum(SaleStatus, "sale_status"), default=SaleStatus.PAID, nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    contact_id: Mapped[str | None] = mapped_column(UUID_STR, ForeignKey("contact.id", ondelete="set null"), nullable=True)
    appointment_id: Mapped[str | None] = mapped_column(
        UUID_STR, ForeignKey("appointment.id", ondelete="set null"), nullable=True
    )
    rep_id: Mapped[str | None] = mapped_column(UUID_STR, ForeignKey("closer.id", ondelete="set null"), nullable=True)
    matched_by: Mapped[str | None] = mapped_column(String(32), nullable=True)
    match_confidence: Mapped[Decimal | None] = mapped_column(RATE, nullable=True)
    manually_matched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    matched_by_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    raw_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    contact: Mapped[Contact | None] = relationship("Contact")
    appointment: Mapped[Appointment | None] = relationship("Appointment")
    rep: Mapped[Closer | None] = relationship("Closer")
    commission: Mapped["Commission | None"] = relationship("Commission", back_populates="sale", uselist=False)
    unmatched_payment: Mapped["UnmatchedPayment | None"] = relationship(
        "UnmatchedPayment", back_populates="sale", uselist=False
    )

    __table_args__ = (
        Index("ix_sale_appointment", "tenant_id", "appointment_id"),
    )


class UnmatchedPayment(TenantScopedMixin, Base):
    """Review queue entry for a sale the matcher could not link."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    sale_id: Mapped[str] = mapped_column(UUID_STR, ForeignKey("sale.id", ondelete="cascade"), unique=True, nullable=False)
    suggested_matches: Mapped[list | None] = mapped_column(JSON, nullable=True)
    status: Mapped[UnmatchedPaymentStatus] = mapped_column(
        _enum(UnmatchedPaymentStatus, "unmatched_payment_status"),
        default=UnmatchedPaymentStatus.PENDING,
        nullable=False,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    sale: Mapped[Sale] = relationship("Sale", back_populates="unmatched_payment")

    __table_args__ = (
        Index("ix_unmatched_status", "tenant_id", "status"),
    )


class Commission(TenantScopedMixin, Base):
    """Commission earned by a closer for exactly one sale."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    sale_id: Mapped[str] = mapped_column(UUID_STR, ForeignKey("sale.id", ondelete="cascade"), unique=True, nullable=False)
    rep_id: Mapped[str] = mapped_column(UUID_STR, ForeignKey("closer.id", ondelete="cascade"), nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(RATE, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    released_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    release_status: Mapped[ReleaseStatus] = mapped_column(
        _enum(ReleaseStatus, "release_status"), default=ReleaseStatus.PENDING, nullable=False
    )
    override_amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    override_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    override_by_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    clawback_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    sale: Mapped[Sale] = relationship("Sale", back_populates="commission")
    rep: Mapped[Closer] = relationship("Closer")

    __table_args__ = (
        Index("ix_commission_release_status", "tenant_id", "release_status"),
    )

    @property
    def payable_amount(self) -> Decimal:
        """Admin override when set, else the computed total."""

        return self.override_amount if self.override_amount is not None else self.total_amount


class WebhookEvent(TimestampMixin, Base):
    """Audit record of one inbound webhook delivery and its processing outcome."""

    id: Mapped[str] = mapped_column(UUID_STR, primary_key=True, default=lambda: str(uuid4()))
    processor: Mapped[str] = mapped_column(String(64), nullable=False)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False)
    tenant_id: Mapped[str | None] = mapped_column(
        UUID_STR, ForeignKey("tenant.id", ondelete="set null"), nullable=True, index=True
    )
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)


__all__ = [
    "Tenant",
    "CommissionRole",
    "Closer",
    "Contact",
    "Appointment",
    "Sale",
    "UnmatchedPayment",
    "Commission",
    "WebhookEvent",
    "AppointmentStatus",
    "InclusionFlag",
    "SaleStatus",
    "UnmatchedPaymentStatus",
    "ReleaseStatus",
]
