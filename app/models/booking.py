from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Boolean, BigInteger, Numeric, Text, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base, BigIntId

BOOKING_STATUSES = ("pending", "confirmed", "cancelled")
PAYMENT_STATUSES = ("unpaid", "paid", "deposit_paid", "settled_elsewhere", "waived")


class Booking(Base):
    __tablename__ = "dive_bookings"
    __table_args__ = (
        Index(
            "uniq_dive_bookings_stripe_checkout_session_id",
            "stripe_checkout_session_id",
            unique=True,
            postgresql_where=text("stripe_checkout_session_id IS NOT NULL"),
        ),
        CheckConstraint("booking_status IN ('pending','confirmed','cancelled')", name="ck_dive_bookings_booking_status"),
        CheckConstraint(
            "payment_status IN ('unpaid','paid','deposit_paid','settled_elsewhere','waived')",
            name="ck_dive_bookings_payment_status",
        ),
    )

    booking_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    operator_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("dive_operators.operator_id"), index=True)
    session_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("dive_sessions.session_id"), nullable=True, index=True)
    guest_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("guest_identities.guest_id"), nullable=True)

    guest_name: Mapped[str] = mapped_column(String(200), default="")
    guest_email: Mapped[str] = mapped_column(String(320), default="")
    guest_phone: Mapped[str] = mapped_column(String(40), default="")
    special_requests: Mapped[str] = mapped_column(Text, default="")
    source: Mapped[str] = mapped_column(String(30), default="public")  # public, dashboard

    headcount: Mapped[int] = mapped_column(Integer, default=1)

    booking_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, confirmed, cancelled
    payment_status: Mapped[str] = mapped_column(String(20), default="unpaid")   # unpaid, paid, deposit_paid, settled_elsewhere, waived

    hold_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Pricing snapshot taken at intake; authoritative, never recomputed.
    payment_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    payment_amount_minor: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    payment_checkout_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # What was actually charged (may differ from the ledger currency via FX)
    stripe_charge_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    stripe_charge_amount_minor: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    fx_rate_estimate: Mapped[Decimal | None] = mapped_column(Numeric(12, 6), nullable=True)
    fx_rate_estimate_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fx_rate_source: Mapped[str | None] = mapped_column(String(80), nullable=True)

    manual_review_required: Mapped[bool] = mapped_column(Boolean, default=False)
    manual_review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    manual_review_flagged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class GuestIdentity(Base):
    __tablename__ = "guest_identities"

    guest_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True, index=True)  # uniqueness is a runtime toggle
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
