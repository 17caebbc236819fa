"""Pure booking lifecycle rules: derived UI status and hold arithmetic.

``booking_status`` x ``payment_status`` is the real state; ``ui_status`` is the
operator-facing phase. The derivation order below is first-match-wins and is
relied on by the dashboard.
"""
from datetime import datetime, timedelta, timezone

CANCELLED = "cancelled"
PAID_CONFIRMED = "paid_confirmed"
PAID_MANUAL_REVIEW = "paid_manual_review"
AWAITING_PAYMENT = "awaiting_payment"
PAYMENT_LINK_EXPIRED = "payment_link_expired"
NEEDS_PRICING_SNAPSHOT = "needs_pricing_snapshot"
PENDING = "pending"

UI_STATUSES = (
    CANCELLED,
    PAID_CONFIRMED,
    PAID_MANUAL_REVIEW,
    AWAITING_PAYMENT,
    PAYMENT_LINK_EXPIRED,
    NEEDS_PRICING_SNAPSHOT,
    PENDING,
)

LATE_PAYMENT_REASON = "payment_received_after_hold_expiry"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    # Some drivers (SQLite) hand back naive datetimes; everything is stored in UTC.
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def hold_active(hold_expires_at: datetime | None, now: datetime) -> bool:
    hold = ensure_utc(hold_expires_at)
    return hold is not None and hold > now


def hold_expired(hold_expires_at: datetime | None, now: datetime) -> bool:
    """A payment at exactly the expiry instant is late. No hold means nothing to expire."""
    hold = ensure_utc(hold_expires_at)
    return hold is not None and hold <= now


def rearmed_hold(current: datetime | None, now: datetime, minutes: int) -> datetime:
    """Start a new hold window unless one is still running; never shortens a live hold."""
    if hold_active(current, now):
        return ensure_utc(current)
    return now + timedelta(minutes=minutes)


def extended_hold(current: datetime | None, now: datetime, minutes: int) -> datetime:
    fresh = now + timedelta(minutes=minutes)
    if hold_active(current, now) and ensure_utc(current) > fresh:
        return ensure_utc(current)
    return fresh


def is_paid_confirmed(booking) -> bool:
    return booking.payment_status == "paid" and booking.booking_status == "confirmed"


def requires_manual_review_derived(booking) -> bool:
    return booking.payment_status == "paid" and booking.booking_status != "confirmed"


def derive_ui_status(booking, now: datetime | None = None) -> str:
    now = now or utcnow()
    if booking.booking_status == "cancelled":
        return CANCELLED
    if is_paid_confirmed(booking):
        return PAID_CONFIRMED
    if requires_manual_review_derived(booking):
        return PAID_MANUAL_REVIEW
    if booking.stripe_checkout_session_id and booking.payment_status == "unpaid":
        if hold_active(booking.hold_expires_at, now):
            return AWAITING_PAYMENT
        return PAYMENT_LINK_EXPIRED
    if booking.payment_amount_minor is None:
        return NEEDS_PRICING_SNAPSHOT
    return PENDING
