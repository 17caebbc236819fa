from datetime import timedelta

import pytest

from app.core.exceptions import ConflictException, ValidationException
from app.models.booking import Booking
from app.models.payment_event import PaymentEvent
from tests.support import NOW, auth_headers


@pytest.fixture
def setup(factory):
    op = factory.operator()
    session = factory.session(op, factory.vessel(op, capacity=10))
    return op, session


def test_regenerate_replaces_checkout_and_extends_hold(db, service, gateway, setup, factory):
    op, session = setup
    b = factory.booking(op, session, checkout_id="cs_old", hold_expires_at=NOW - timedelta(minutes=30))

    result = service.regenerate_payment_link(op.operator_id, b.booking_id)

    assert result.action == "payment_link_regenerated"
    assert result.old_stripe_checkout_session_id == "cs_old"
    assert result.stripe_checkout_session_id == "cs_test_1"
    assert result.hold_expires_at == NOW + timedelta(minutes=15)

    db.expire_all()
    fresh = db.get(Booking, b.booking_id)
    assert fresh.stripe_checkout_session_id == "cs_test_1"
    assert fresh.payment_amount_minor == 90000  # snapshot reused, not recomputed
    assert gateway.created[0]["metadata"]["old_stripe_checkout_session_id"] == "cs_old"
    assert gateway.created[0]["product_name"] == "Dive Booking (Regenerated Link)"

    event = db.get(PaymentEvent, f"regen:{b.booking_id}:cs_test_1")
    assert event.event_type == "checkout.link_regenerated"
    assert event.raw_event["old_stripe_checkout_session_id"] == "cs_old"


def test_regenerate_never_shortens_a_longer_hold(service, setup, factory):
    op, session = setup
    far = NOW + timedelta(hours=1)
    b = factory.booking(op, session, checkout_id="cs_old", hold_expires_at=far)
    assert service.regenerate_payment_link(op.operator_id, b.booking_id).hold_expires_at == far


def test_regenerate_works_without_a_previous_checkout(service, setup, factory):
    op, session = setup
    b = factory.booking(op, session)
    result = service.regenerate_payment_link(op.operator_id, b.booking_id)
    assert result.old_stripe_checkout_session_id is None
    assert result.stripe_checkout_session_id == "cs_test_1"


@pytest.mark.parametrize(
    "booking_status,payment_status,action",
    [
        ("cancelled", "unpaid", "noop_cancelled"),
        ("confirmed", "paid", "noop_already_paid_confirmed"),
        ("pending", "paid", "noop_already_paid"),
        ("confirmed", "settled_elsewhere", "noop_already_confirmed"),
    ],
)
def test_regenerate_noops(service, gateway, setup, factory, booking_status, payment_status, action):
    op, session = setup
    b = factory.booking(op, session, booking_status=booking_status, payment_status=payment_status, checkout_id="cs_old")
    assert service.regenerate_payment_link(op.operator_id, b.booking_id).action == action
    assert gateway.created == []


def test_regenerate_applies_capacity(service, setup, factory):
    op, session = setup
    factory.booking(op, session, headcount=9, booking_status="confirmed", payment_status="paid")
    b = factory.booking(op, session, headcount=2, checkout_id="cs_old", hold_expires_at=NOW - timedelta(minutes=1))
    with pytest.raises(ConflictException) as exc:
        service.regenerate_payment_link(op.operator_id, b.booking_id)
    assert exc.value.details["capacity_consumed"] == 9


def test_regenerate_without_snapshot_is_a_validation_error(service, setup, factory):
    op, session = setup
    b = factory.booking(op, session, amount_minor=None)
    with pytest.raises(ValidationException) as exc:
        service.regenerate_payment_link(op.operator_id, b.booking_id)
    assert exc.value.code == "missing_pricing_snapshot"


def test_regenerate_endpoint(client, setup, factory):
    op, session = setup
    factory.user(op, subject="auth|owner")
    b = factory.booking(op, session, checkout_id="cs_old")
    r = client.post(f"/api/v1/dashboard/bookings/{b.booking_id}/payment-link/regenerate", headers=auth_headers("auth|owner"))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["action"] == "payment_link_regenerated"
    assert body["old_stripe_checkout_session_id"] == "cs_old"
