"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "dive_operators",
        sa.Column("operator_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("default_currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_dive_operators_slug", "dive_operators", ["slug"], unique=True)

    op.create_table(
        "users",
        sa.Column("user_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("auth_subject", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="operator_staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("active_operator_id", sa.BigInteger(), sa.ForeignKey("dive_operators.operator_id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_auth_subject", "users", ["auth_subject"], unique=True)

    op.create_table(
        "user_operator_affiliations",
        sa.Column("affiliation_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("operator_id", sa.BigInteger(), sa.ForeignKey("dive_operators.operator_id"), nullable=False),
        sa.Column("affiliation_type", sa.String(length=30), nullable=False, server_default="staff"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_user_operator_affiliations_user_id", "user_operator_affiliations", ["user_id"])
    op.create_index("ix_user_operator_affiliations_operator_id", "user_operator_affiliations", ["operator_id"])

    op.create_table(
        "vessels",
        sa.Column("vessel_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("operator_id", sa.BigInteger(), sa.ForeignKey("dive_operators.operator_id"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
    )
    op.create_index("ix_vessels_operator_id", "vessels", ["operator_id"])

    op.create_table(
        "dive_sessions",
        sa.Column("session_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("operator_id", sa.BigInteger(), sa.ForeignKey("dive_operators.operator_id"), nullable=False),
        sa.Column("dive_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("site_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("vessel_id", sa.BigInteger(), sa.ForeignKey("vessels.vessel_id"), nullable=True),
        sa.Column("price_per_diver", sa.Numeric(10, 3), nullable=True),
        sa.Column("session_currency", sa.String(length=3), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_dive_sessions_operator_id", "dive_sessions", ["operator_id"])
    op.create_index("ix_dive_sessions_dive_datetime", "dive_sessions", ["dive_datetime"])

    op.create_table(
        "guest_identities",
        sa.Column("guest_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_guest_identities_email", "guest_identities", ["email"], unique=True)
    op.create_index("ix_guest_identities_phone", "guest_identities", ["phone"])

    op.create_table(
        "dive_bookings",
        sa.Column("booking_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("operator_id", sa.BigInteger(), sa.ForeignKey("dive_operators.operator_id"), nullable=False),
        sa.Column("session_id", sa.BigInteger(), sa.ForeignKey("dive_sessions.session_id"), nullable=True),
        sa.Column("guest_id", sa.BigInteger(), sa.ForeignKey("guest_identities.guest_id"), nullable=True),
        sa.Column("guest_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("guest_email", sa.String(length=320), nullable=False, server_default=""),
        sa.Column("guest_phone", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("special_requests", sa.Text(), nullable=False, server_default=""),
        sa.Column("source", sa.String(length=30), nullable=False, server_default="public"),
        sa.Column("headcount", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("booking_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="unpaid"),
        sa.Column("hold_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_currency", sa.String(length=3), nullable=True),
        sa.Column("payment_amount_minor", sa.BigInteger(), nullable=True),
        sa.Column("stripe_checkout_session_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
        sa.Column("payment_checkout_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("stripe_charge_currency", sa.String(length=3), nullable=True),
        sa.Column("stripe_charge_amount_minor", sa.BigInteger(), nullable=True),
        sa.Column("fx_rate_estimate", sa.Numeric(12, 6), nullable=True),
        sa.Column("fx_rate_estimate_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fx_rate_source", sa.String(length=80), nullable=True),
        sa.Column("manual_review_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("manual_review_reason", sa.Text(), nullable=True),
        sa.Column("manual_review_flagged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("booking_status IN ('pending','confirmed','cancelled')", name="ck_dive_bookings_booking_status"),
        sa.CheckConstraint(
            "payment_status IN ('unpaid','paid','deposit_paid','settled_elsewhere','waived')",
            name="ck_dive_bookings_payment_status",
        ),
    )
    op.create_index("ix_dive_bookings_operator_id", "dive_bookings", ["operator_id"])
    op.create_index("ix_dive_bookings_session_id", "dive_bookings", ["session_id"])
    op.create_index("ix_dive_bookings_stripe_payment_intent_id", "dive_bookings", ["stripe_payment_intent_id"])
    op.create_index(
        "uniq_dive_bookings_stripe_checkout_session_id",
        "dive_bookings",
        ["stripe_checkout_session_id"],
        unique=True,
        postgresql_where=sa.text("stripe_checkout_session_id IS NOT NULL"),
    )

    op.create_table(
        "payment_events",
        sa.Column("event_id", sa.String(length=255), primary_key=True),
        sa.Column("event_type", sa.String(length=80), nullable=False),
        sa.Column("processing_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("raw_event", sa.JSON(), nullable=True),
        sa.Column("booking_id", sa.BigInteger(), nullable=True),
        sa.Column("operator_id", sa.BigInteger(), nullable=True),
        sa.Column("stripe_checkout_session_id", sa.String(length=255), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_payment_events_processing_status", "payment_events", ["processing_status"])
    op.create_index("ix_payment_events_booking_id", "payment_events", ["booking_id"])
    op.create_index("ix_payment_events_operator_id", "payment_events", ["operator_id"])
    op.create_index("ix_payment_events_received_at", "payment_events", ["received_at"])

    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("recipient_type", sa.String(length=20), nullable=False),
        sa.Column("recipient_address", sa.String(length=320), nullable=False),
        sa.Column("channel", sa.String(length=20), nullable=False, server_default="email"),
        sa.Column("event_type", sa.String(length=80), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="queued"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("booking_id", sa.BigInteger(), nullable=True),
        sa.Column("session_id", sa.BigInteger(), nullable=True),
        sa.Column("operator_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_recipient_address", "notifications", ["recipient_address"])
    op.create_index("ix_notifications_event_type", "notifications", ["event_type"])
    op.create_index("ix_notifications_booking_id", "notifications", ["booking_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_booking_id", table_name="notifications")
    op.drop_index("ix_notifications_event_type", table_name="notifications")
    op.drop_index("ix_notifications_recipient_address", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_payment_events_received_at", table_name="payment_events")
    op.drop_index("ix_payment_events_operator_id", table_name="payment_events")
    op.drop_index("ix_payment_events_booking_id", table_name="payment_events")
    op.drop_index("ix_payment_events_processing_status", table_name="payment_events")
    op.drop_table("payment_events")
    op.drop_index("uniq_dive_bookings_stripe_checkout_session_id", table_name="dive_bookings")
    op.drop_index("ix_dive_bookings_stripe_payment_intent_id", table_name="dive_bookings")
    op.drop_index("ix_dive_bookings_session_id", table_name="dive_bookings")
    op.drop_index("ix_dive_bookings_operator_id", table_name="dive_bookings")
    op.drop_table("dive_bookings")
    op.drop_index("ix_guest_identities_phone", table_name="guest_identities")
    op.drop_index("ix_guest_identities_email", table_name="guest_identities")
    op.drop_table("guest_identities")
    op.drop_index("ix_dive_sessions_dive_datetime", table_name="dive_sessions")
    op.drop_index("ix_dive_sessions_operator_id", table_name="dive_sessions")
    op.drop_table("dive_sessions")
    op.drop_index("ix_vessels_operator_id", table_name="vessels")
    op.drop_table("vessels")
    op.drop_index("ix_user_operator_affiliations_operator_id", table_name="user_operator_affiliations")
    op.drop_index("ix_user_operator_affiliations_user_id", table_name="user_operator_affiliations")
    op.drop_table("user_operator_affiliations")
    op.drop_index("ix_users_auth_subject", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_dive_operators_slug", table_name="dive_operators")
    op.drop_table("dive_operators")
