"""Initial schema: users, events, ledgers, participations, tickets, payments, attendance.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'participant'")),
        sa.Column("participant_type", sa.String(40), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('participant', 'organizer', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("status", sa.String(12), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("eligibility", sa.String(160), nullable=False, server_default=sa.text("'all'")),
        sa.Column("reg_fee", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("reg_deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reg_limit", sa.Integer(), nullable=True),
        sa.Column("form_schema", sa.JSON(), nullable=True),
        sa.Column("merch_config", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("type IN ('NORMAL', 'MERCH')", name="check_event_type"),
        sa.CheckConstraint("status IN ('DRAFT', 'PUBLISHED', 'CLOSED', 'COMPLETED')", name="check_event_status"),
        sa.CheckConstraint("end_date > start_date", name="check_event_dates"),
        sa.CheckConstraint("reg_deadline <= start_date", name="check_event_deadline"),
        sa.CheckConstraint("reg_limit IS NULL OR reg_limit >= 1", name="check_event_reg_limit"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    # Effective status is derived from (status, start_date); dashboards filter on both.
    op.create_index("ix_events_status_start", "events", ["status", "start_date"])

    # Capacity ledger: one row per NORMAL event, opened on publish.
    # "limit" is reserved in SQL, hence slot_limit.
    op.create_table(
        "capacity_ledger",
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("slot_limit", sa.Integer(), nullable=False),
        sa.Column("consumed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("consumed >= 0", name="check_capacity_consumed_non_negative"),
        sa.CheckConstraint("consumed <= slot_limit", name="check_capacity_consumed_lte_limit"),
    )

    # Stock ledger: one row per MERCH variant
    op.create_table(
        "stock_ledger",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sku", sa.String(60), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column("reserved", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.UniqueConstraint("event_id", "sku", name="uq_stock_event_sku"),
        sa.CheckConstraint("reserved >= 0", name="check_stock_reserved_non_negative"),
        sa.CheckConstraint("reserved <= stock", name="check_stock_reserved_lte_stock"),
    )
    op.create_index("ix_stock_ledger_id", "stock_ledger", ["id"])
    op.create_index("ix_stock_ledger_event_id", "stock_ledger", ["event_id"])

    # Participations table
    op.create_table(
        "participations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_type", sa.String(10), nullable=False),
        sa.Column("status", sa.String(12), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("ticket_id", sa.String(40), nullable=True),
        sa.Column("team_name", sa.String(120), nullable=True),
        sa.Column("form_responses", sa.JSON(), nullable=True),
        sa.Column("sku", sa.String(60), nullable=True),
        sa.Column("variant_label", sa.String(120), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'rejected')", name="check_participation_status"
        ),
        sa.CheckConstraint("quantity IS NULL OR quantity > 0", name="check_participation_quantity"),
    )
    op.create_index("ix_participations_id", "participations", ["id"])
    op.create_index("ix_participations_event_id", "participations", ["event_id"])
    op.create_index("ix_participations_participant_id", "participations", ["participant_id"])
    # At most one active participation per (event, participant).
    # Cancelled and rejected rows stay behind for history, so a plain
    # unique constraint would block re-registration.
    op.create_index(
        "uq_active_participation",
        "participations",
        ["event_id", "participant_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'confirmed')"),
    )

    # Tickets table
    op.create_table(
        "tickets",
        sa.Column("id", sa.String(40), primary_key=True),
        sa.Column("participation_id", sa.Integer(), sa.ForeignKey("participations.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_type", sa.String(10), nullable=False),
        sa.Column("qr_payload", sa.Text(), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("participation_id", name="uq_tickets_participation_id"),
    )
    op.create_index("ix_tickets_event_id", "tickets", ["event_id"])
    op.create_index("ix_tickets_participant_id", "tickets", ["participant_id"])

    # Payments table
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("participation_id", sa.Integer(), sa.ForeignKey("participations.id"), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("proof_ref", sa.String(500), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("participation_id", name="uq_payments_participation_id"),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="check_payment_status"),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])

    # Attendance: created lazily on first mark
    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("participation_id", sa.Integer(), sa.ForeignKey("participations.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("is_present", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("marked_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("participation_id", name="uq_attendance_participation_id"),
    )
    op.create_index("ix_attendance_id", "attendance", ["id"])
    op.create_index("ix_attendance_event_id", "attendance", ["event_id"])

    # Append-only audit trail
    op.create_table(
        "attendance_audit",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("participation_id", sa.Integer(), sa.ForeignKey("participations.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("actor", sa.String(40), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("previous_state", sa.Boolean(), nullable=False),
        sa.Column("next_state", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "action IN ('scan_mark_present', 'manual_mark_present', 'manual_mark_absent')",
            name="check_audit_action",
        ),
    )
    op.create_index("ix_attendance_audit_id", "attendance_audit", ["id"])
    op.create_index("ix_attendance_audit_participation", "attendance_audit", ["participation_id", "created_at"])
    op.create_index("ix_attendance_audit_event", "attendance_audit", ["event_id", "created_at"])


def downgrade() -> None:
    op.drop_table("attendance_audit")
    op.drop_table("attendance")
    op.drop_table("payments")
    op.drop_table("tickets")
    op.drop_index("uq_active_participation", table_name="participations")
    op.drop_table("participations")
    op.drop_table("stock_ledger")
    op.drop_table("capacity_ledger")
    op.drop_table("events")
    op.drop_table("users")
