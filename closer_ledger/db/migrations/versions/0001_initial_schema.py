"""Initial schema for the closer commission ledger.

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-18
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None

appointment_status_enum = sa.Enum(
    "scheduled", "showed", "no_show", "cancelled", "signed", name="appointment_status"
)
inclusion_flag_enum = sa.Enum("included", "excluded", name="inclusion_flag")
sale_status_enum = sa.Enum("paid", "refunded", name="sale_status")
unmatched_payment_status_enum = sa.Enum("pending", "matched", name="unmatched_payment_status")
release_status_enum = sa.Enum("pending", "partial", "released", "paid", name="release_status")
ENUMS = (
    appointment_status_enum,
    inclusion_flag_enum,
    sale_status_enum,
    unmatched_payment_status_enum,
    release_status_enum,
)
TENANT_PK = "tenant.id"
CLOSER_PK = "closer.id"
SALE_PK = "sale.id"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "tenant",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("crm_location_id", sa.String(length=128), nullable=True, unique=True),
        sa.Column("fallback_commission_rate", sa.Numeric(5, 4), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "commissionrole",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("default_rate", sa.Numeric(5, 4), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], [TENANT_PK], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "name", name="uq_commission_role_name_per_tenant"),
    )

    op.create_table(
        "closer",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("crm_user_id", sa.String(length=128), nullable=True),
        sa.Column("custom_commission_rate", sa.Numeric(5, 4), nullable=True),
        sa.Column("commission_role_id", sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], [TENANT_PK], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["commission_role_id"], ["commissionrole.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("tenant_id", "email", name="uq_closer_email_per_tenant"),
    )

    op.create_table(
        "contact",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("external_id", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], [TENANT_PK], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "external_id", name="uq_contact_external_id"),
    )

    op.create_table(
        "appointment",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("contact_id", sa.String(length=36), nullable=False),
        sa.Column("closer_id", sa.String(length=36), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", appointment_status_enum, nullable=False, server_default="scheduled"),
        sa.Column("external_id", sa.String(length=128), nullable=True),
        sa.Column("calendar_external_id", sa.String(length=128), nullable=True),
        sa.Column("rescheduled_from_id", sa.String(length=36), nullable=True),
        sa.Column("reschedule_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sale_id", sa.String(length=36), nullable=True),
        sa.Column("inclusion_flag", inclusion_flag_enum, nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], [TENANT_PK], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["contact.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["closer_id"], [CLOSER_PK], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["rescheduled_from_id"], ["appointment.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("tenant_id", "external_id", name="uq_appointment_external_id"),
    )

    op.create_table(
        "sale",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False, unique=True),
        sa.Column("processor", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("status", sale_status_enum, nullable=False, server_default="paid"),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("contact_id", sa.String(length=36), nullable=True),
        sa.Column("appointment_id", sa.String(length=36), nullable=True),
        sa.Column("rep_id", sa.String(length=36), nullable=True),
        sa.Column("matched_by", sa.String(length=32), nullable=True),
        sa.Column("match_confidence", sa.Numeric(5, 4), nullable=True),
        sa.Column("manually_matched", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("matched_by_user_id", sa.String(length=128), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], [TENANT_PK], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["contact.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointment.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["rep_id"], [CLOSER_PK], ondelete="SET NULL"),
    )

    op.create_table(
        "unmatchedpayment",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("sale_id", sa.String(length=36), nullable=False, unique=True),
        sa.Column("suggested_matches", sa.JSON(), nullable=True),
        sa.Column("status", unmatched_payment_status_enum, nullable=False, server_default="pending"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by_user_id", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], [TENANT_PK], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sale_id"], [SALE_PK], ondelete="CASCADE"),
    )

    op.create_table(
        "commission",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("sale_id", sa.String(length=36), nullable=False, unique=True),
        sa.Column("rep_id", sa.String(length=36), nullable=False),
        sa.Column("gross_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 4), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("released_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("release_status", release_status_enum, nullable=False, server_default="pending"),
        sa.Column("override_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("override_reason", sa.String(length=500), nullable=True),
        sa.Column("override_by_user_id", sa.String(length=128), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clawback_requested_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], [TENANT_PK], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sale_id"], [SALE_PK], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["rep_id"], [CLOSER_PK], ondelete="CASCADE"),
    )

    op.create_table(
        "webhookevent",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("processor", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], [TENANT_PK], ondelete="SET NULL"),
    )

    for table in ("commissionrole", "closer", "contact", "appointment", "sale", "unmatchedpayment", "commission"):
        op.create_index(f"ix_{table}_tenant_id", table, ["tenant_id"])
    op.create_index("ix_webhookevent_tenant_id", "webhookevent", ["tenant_id"])
    op.create_index("ix_closer_crm_user", "closer", ["tenant_id", "crm_user_id"])
    op.create_index("ix_contact_email", "contact", ["tenant_id", "email"])
    op.create_index("ix_contact_phone", "contact", ["tenant_id", "phone"])
    op.create_index("ix_appointment_contact_time", "appointment", ["tenant_id", "contact_id", "scheduled_at"])
    op.create_index("ix_sale_appointment", "sale", ["tenant_id", "appointment_id"])
    op.create_index("ix_unmatched_status", "unmatchedpayment", ["tenant_id", "status"])
    op.create_index("ix_commission_release_status", "commission", ["tenant_id", "release_status"])


def downgrade() -> None:
    op.drop_index("ix_commission_release_status", table_name="commission")
    op.drop_index("ix_unmatched_status", table_name="unmatchedpayment")
    op.drop_index("ix_sale_appointment", table_name="sale")
    op.drop_index("ix_appointment_contact_time", table_name="appointment")
    op.drop_index("ix_contact_phone", table_name="contact")
    op.drop_index("ix_contact_email", table_name="contact")
    op.drop_index("ix_closer_crm_user", table_name="closer")
    op.drop_index("ix_webhookevent_tenant_id", table_name="webhookevent")
    for table in ("commissionrole", "closer", "contact", "appointment", "sale", "unmatchedpayment", "commission"):
        op.drop_index(f"ix_{table}_tenant_id", table_name=table)

    for table in (
        "webhookevent",
        "commission",
        "unmatchedpayment",
        "sale",
        "appointment",
        "contact",
        "closer",
        "commissionrole",
        "tenant",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
