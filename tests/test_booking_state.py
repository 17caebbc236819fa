from datetime import timedelta
from types import SimpleNamespace

import pytest

from app.services.booking_state import (
    derive_ui_status,
    extended_hold,
    hold_active,
    hold_expired,
    rearmed_hold,
    requires_manual_review_derived,
)
from tests.support import NOW


def _booking(**kw):
    base = dict(
        booking_status="pending",
        payment_status="unpaid",
        stripe_checkout_session_id=None,
        hold_expires_at=None,
        payment_amount_minor=45000,
    )
    base.update(kw)
    return SimpleNamespace(**base)


LIVE = NOW + timedelta(minutes=10)
LAPSED = NOW - timedelta(minutes=1)


@pytest.mark.parametrize(
    "fields,expected",
    [
        (dict(booking_status="cancelled", payment_status="paid"), "cancelled"),
        (dict(booking_status="confirmed", payment_status="paid"), "paid_confirmed"),
        (dict(payment_status="paid", manual_review_required=True), "paid_manual_review"),
        (dict(stripe_checkout_session_id="cs_1", hold_expires_at=LIVE), "awaiting_payment"),
        (dict(stripe_checkout_session_id="cs_1", hold_expires_at=LAPSED), "payment_link_expired"),
        (dict(stripe_checkout_session_id="cs_1", hold_expires_at=NOW), "payment_link_expired"),
        (dict(stripe_checkout_session_id="cs_1", hold_expires_at=None), "payment_link_expired"),
        (dict(payment_amount_minor=None), "needs_pricing_snapshot"),
        (dict(), "pending"),
        # confirmed without payment (e.g. settled elsewhere) falls through to pending
        (dict(booking_status="confirmed", payment_status="settled_elsewhere"), "pending"),
    ],
)
def test_derive_ui_status(fields, expected):
    assert derive_ui_status(_booking(**fields), NOW) == expected


def test_naive_datetimes_are_treated_as_utc():
    b = _booking(stripe_checkout_session_id="cs_1", hold_expires_at=LIVE.replace(tzinfo=None))
    assert derive_ui_status(b, NOW) == "awaiting_payment"


def test_requires_manual_review_derived():
    assert requires_manual_review_derived(_booking(payment_status="paid")) is True
    assert requires_manual_review_derived(_booking(payment_status="paid", booking_status="confirmed")) is False
    assert requires_manual_review_derived(_booking()) is False


def test_hold_boundaries():
    assert hold_active(LIVE, NOW)
    assert not hold_active(NOW, NOW)
    assert hold_expired(NOW, NOW)  # paying at the expiry instant is late
    assert not hold_expired(LIVE, NOW)
    assert not hold_expired(None, NOW)


def test_rearmed_hold_keeps_a_live_hold():
    assert rearmed_hold(LIVE, NOW, 15) == LIVE
    assert rearmed_hold(LAPSED, NOW, 15) == NOW + timedelta(minutes=15)
    assert rearmed_hold(None, NOW, 15) == NOW + timedelta(minutes=15)


def test_extended_hold_never_shortens():
    far = NOW + timedelta(hours=2)
    assert extended_hold(far, NOW, 15) == far
    assert extended_hold(LIVE, NOW, 15) == NOW + timedelta(minutes=15)
    assert extended_hold(LAPSED, NOW, 15) == NOW + timedelta(minutes=15)
