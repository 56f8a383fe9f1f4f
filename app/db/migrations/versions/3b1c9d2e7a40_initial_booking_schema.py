"""initial booking schema

Revision ID: 3b1c9d2e7a40
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3b1c9d2e7a40"
down_revision = None
branch_labels = None
depends_on = None

payment_status = sa.Enum("PENDING", "PAID", "CANCELLED", "REFUNDED", name="paymentstatus")
session_status = sa.Enum("UPCOMING", "IN_PROGRESS", "COMPLETED", "CANCELLED", name="sessionstatus")
payment_choice = sa.Enum("FULL", "DEPOSIT", name="paymentchoice")
refund_status = sa.Enum("PENDING", "COMPLETED", name="refundstatus")
payment_record_status = sa.Enum("PENDING", "SUCCESS", "FAILED", name="paymentrecordstatus")
notification_type = sa.Enum(
    "NEW_BOOKING",
    "PAYMENT_RECEIVED",
    "PAYMENT_FAILED",
    "CANCELLATION",
    "SESSION_STARTED",
    "SESSION_COMPLETED",
    "REFUND_PROCESSED",
    name="notificationtype",
)


def upgrade():
    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
    )
    op.create_index("ix_admins_id", "admins", ["id"])
    op.create_index("ix_admins_email", "admins", ["email"], unique=True)

    op.create_table(
        "courts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_courts_id", "courts", ["id"])

    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time_start", sa.Time(), nullable=False),
        sa.Column("time_end", sa.Time(), nullable=False),
        sa.Column("period", sa.String(), nullable=True),
        sa.Column("price_per_person", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("court_id", "date", "time_start", name="uq_court_slot"),
    )
    op.create_index("ix_time_slots_id", "time_slots", ["id"])
    op.create_index("ix_time_slots_court_id", "time_slots", ["court_id"])
    op.create_index("ix_time_slots_date", "time_slots", ["date"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_ref", sa.String(), nullable=False),
        sa.Column("court_id", sa.Integer(), sa.ForeignKey("courts.id"), nullable=False),
        sa.Column("time_slot_id", sa.Integer(), sa.ForeignKey("time_slots.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(), nullable=False),

        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("customer_email", sa.String(), nullable=False),
        sa.Column("customer_phone", sa.String(), nullable=False),
        sa.Column("customer_whatsapp", sa.String(), nullable=True),
        sa.Column("number_of_players", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("notes", sa.Text(), nullable=True),

        sa.Column("subtotal", sa.Integer(), nullable=False),
        sa.Column("payment_fee", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("full_amount", sa.Integer(), nullable=False),
        sa.Column("deposit_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("remaining_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_choice", payment_choice, nullable=True),
        sa.Column("require_deposit", sa.Boolean(), nullable=False, server_default=sa.false()),

        sa.Column("payment_status", payment_status, nullable=False, server_default="PENDING"),
        sa.Column("session_status", session_status, nullable=False, server_default="UPCOMING"),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_url", sa.String(), nullable=True),
        sa.Column("payment_token", sa.String(), nullable=True),

        sa.Column("venue_payment_received", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("venue_payment_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("venue_payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("venue_payment_method", sa.String(), nullable=True),
        sa.Column("venue_payment_expired", sa.Boolean(), nullable=False, server_default=sa.false()),

        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_notes", sa.Text(), nullable=True),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),

        sa.Column("refund_status", refund_status, nullable=True),
        sa.Column("refund_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("refund_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_reason", sa.String(), nullable=True),
        sa.Column("refund_method", sa.String(), nullable=True),
        sa.Column("refunded_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column("refund_notes", sa.Text(), nullable=True),

        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_booking_ref", "bookings", ["booking_ref"], unique=True)
    op.create_index("ix_bookings_time_slot_id", "bookings", ["time_slot_id"])
    op.create_index("ix_bookings_customer_email", "bookings", ["customer_email"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", payment_record_status, nullable=False, server_default="PENDING"),
        sa.Column("transaction_id", sa.String(), nullable=True),
        sa.Column("payment_type", sa.String(), nullable=True),
        sa.Column("gateway_response", sa.JSON(), nullable=True),
        sa.Column("gateway_fee", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])
    op.create_index("ix_payments_order_id", "payments", ["order_id"])

    op.create_table(
        "venue_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False, unique=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("received_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_venue_payments_id", "venue_payments", ["id"])

    op.create_table(
        "admin_notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_admin_notifications_id", "admin_notifications", ["id"])
    op.create_index("ix_admin_notifications_booking_id", "admin_notifications", ["booking_id"])


def downgrade():
    op.drop_table("admin_notifications")
    op.drop_table("venue_payments")
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("time_slots")
    op.drop_table("courts")
    op.drop_table("admins")

    bind = op.get_bind()
    for enum in (notification_type, payment_record_status, refund_status, payment_choice,
                 session_status, payment_status):
        enum.drop(bind, checkfirst=True)
