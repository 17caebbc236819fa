import pytest

from app.models.booking import Booking
from tests.support import auth_headers


@pytest.fixture
def setup(factory):
    op = factory.operator()
    return op, factory.session(op, factory.vessel(op))


def test_reject_cancels_and_notifies_guest(db, service, notifier, setup, factory):
    op, session = setup
    b = factory.booking(op, session)

    result = service.reject(op.operator_id, b.booking_id)

    assert result.action == "rejected"
    db.expire_all()
    assert db.get(Booking, b.booking_id).booking_status == "cancelled"
    assert notifier.event_types == ["booking_rejected.guest.email"]
    event = notifier.events[0]
    assert event.recipient_address == "rana@example.com"
    assert event.booking_id == b.booking_id


def test_reject_twice_is_a_noop_without_second_notification(service, notifier, setup, factory):
    op, session = setup
    b = factory.booking(op, session)
    assert service.reject(op.operator_id, b.booking_id).action == "rejected"
    assert service.reject(op.operator_id, b.booking_id).action == "noop_already_cancelled"
    assert len(notifier.events) == 1


def test_reject_without_guest_email_skips_notification(service, notifier, setup, factory):
    op, session = setup
    b = factory.booking(op, session, guest_email="")
    assert service.reject(op.operator_id, b.booking_id).action == "rejected"
    assert notifier.events == []


def test_notifier_failure_does_not_undo_cancellation(db, gateway, payment_config, setup, factory):
    from app.services.booking_service import BookingService

    class BrokenNotifier:
        def notify(self, event):
            raise RuntimeError("broker down")

    op, session = setup
    b = factory.booking(op, session)
    svc = BookingService(db, gateway, payment_config, BrokenNotifier())
    assert svc.reject(op.operator_id, b.booking_id).action == "rejected"
    db.expire_all()
    assert db.get(Booking, b.booking_id).booking_status == "cancelled"


def test_cancelled_booking_frees_capacity(service, setup, factory):
    op, session = setup  # capacity 10
    held = factory.booking(op, session, headcount=10, booking_status="confirmed", payment_status="paid")
    waiting = factory.booking(op, session, headcount=2)
    service.reject(op.operator_id, held.booking_id)
    assert service.approve(op.operator_id, waiting.booking_id).action == "checkout_created"


def test_reject_endpoint_is_idempotent(client, notifier, setup, factory):
    op, session = setup
    factory.user(op, subject="auth|owner")
    b = factory.booking(op, session)
    url = f"/api/v1/dashboard/bookings/{b.booking_id}/reject"
    assert client.post(url, headers=auth_headers("auth|owner")).json()["action"] == "rejected"
    second = client.post(url, headers=auth_headers("auth|owner"))
    assert second.status_code == 200
    assert second.json() == {"ok": True, "status": "success", "booking_id": str(b.booking_id), "action": "noop_already_cancelled"}
    assert len(notifier.events) == 1
