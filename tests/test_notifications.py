from datetime import datetime, timedelta, timezone

import pytest

from app.core.config import settings
from app.models.notification import Notification
from app.services import notification_service
from app.services.notification_service import (
    CeleryNotifier,
    NotificationEvent,
    booking_confirmed_notifications,
    booking_rejected_notification,
    deliver,
    process_failed_notifications,
)


class _Resp:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body or {}
        self.text = str(self._body)

    def json(self):
        return self._body


class _Calls(list):
    response = None


@pytest.fixture
def resend(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(settings, "RESEND_FROM_EMAIL", "bookings@reef.example")
    calls = _Calls()

    def fake_post(url, **kwargs):
        calls.append((url, kwargs))
        return calls.response

    calls.response = _Resp(200, {"id": "msg_1"})
    monkeypatch.setattr(notification_service.requests, "post", fake_post)
    return calls


def _email_payload(**kw):
    return NotificationEvent(
        channel="email",
        recipient_type="guest",
        recipient_address="rana@example.com",
        event_type="booking_rejected.guest.email",
        subject="Booking Update",
        body="<p>Hello</p>",
        booking_id=7,
        **kw,
    ).as_payload()


def test_deliver_logs_sent_row(db, resend):
    n = deliver(db, _email_payload())
    assert n.status == "sent"
    assert n.attempts == 1
    assert n.sent_at is not None
    url, kwargs = resend[0]
    assert url == notification_service.RESEND_URL
    assert kwargs["json"]["to"] == ["rana@example.com"]
    assert kwargs["headers"]["Authorization"] == "Bearer re_test"


def test_deliver_provider_error_is_logged_not_raised(db, resend):
    resend.response = _Resp(422, {"message": "bad"})
    n = deliver(db, _email_payload())
    assert n.status == "failed"
    assert "422" in n.error_message
    assert db.query(Notification).count() == 1


def test_unconfigured_email_fails(db, monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    n = deliver(db, _email_payload())
    assert n.status == "failed"
    assert "not configured" in n.error_message


def test_retry_queue(db, resend):
    resend.response = _Resp(500, {})
    first = deliver(db, _email_payload())
    assert first.status == "failed"

    exhausted = Notification(recipient_type="guest", recipient_address="x@example.com", channel="email",
                             event_type="e", body="b", status="failed", attempts=notification_service.MAX_ATTEMPTS)
    db.add(exhausted)
    db.commit()

    resend.response = _Resp(200, {"id": "msg_2"})
    assert process_failed_notifications(db) == {"processed": 1, "sent": 1, "failed": 0}
    db.refresh(first)
    assert (first.status, first.attempts) == ("sent", 2)
    db.refresh(exhausted)
    assert exhausted.status == "failed"


def test_notifier_never_raises(monkeypatch):
    import app.tasks.jobs as jobs

    class Broken:
        def delay(self, payload):
            raise ConnectionError("broker down")

    monkeypatch.setattr(jobs, "deliver_notification", Broken())
    CeleryNotifier().notify(NotificationEvent(**_email_payload()))


def test_message_builders(factory):
    op = factory.operator()
    b = factory.booking(op, factory.session(op), guest_name="<Rana>")
    rejected = booking_rejected_notification(b)
    assert rejected.event_type == "booking_rejected.guest.email"
    assert "&lt;Rana&gt;" in rejected.body

    events = booking_confirmed_notifications(b)
    assert [e.channel for e in events] == ["email", "whatsapp"]
    assert events[1].recipient_address == "whatsapp:+962790000000"

    b.guest_email = ""
    assert booking_rejected_notification(b) is None


def test_retry_queue_leaves_in_flight_rows_alone(db, resend):
    now = datetime.now(timezone.utc)
    fresh = Notification(recipient_type="guest", recipient_address="a@example.com", channel="email",
                         event_type="e", body="b", status="queued", attempts=0, created_at=now)
    stale = Notification(recipient_type="guest", recipient_address="b@example.com", channel="email",
                         event_type="e", body="b", status="queued", attempts=0,
                         created_at=now - notification_service.STALE_QUEUED_AFTER - timedelta(minutes=1))
    db.add_all([fresh, stale])
    db.commit()

    assert process_failed_notifications(db, now=now) == {"processed": 1, "sent": 1, "failed": 0}
    assert [kwargs["json"]["to"] for _, kwargs in resend] == [["b@example.com"]]
    db.refresh(fresh)
    assert (fresh.status, fresh.attempts) == ("queued", 0)
