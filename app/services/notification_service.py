from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
import html
import logging

import requests
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.notification import Notification

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
MAX_ATTEMPTS = 5
# A queued row younger than this may still have its first send in flight.
STALE_QUEUED_AFTER = timedelta(minutes=15)


class NotificationError(RuntimeError):
    pass


@dataclass
class NotificationEvent:
    channel: str            # email | whatsapp
    recipient_type: str     # guest | operator
    recipient_address: str  # email address or whatsapp:+E164
    event_type: str         # e.g. booking_rejected.guest.email
    body: str
    subject: str | None = None
    booking_id: int | None = None
    session_id: int | None = None
    operator_id: int | None = None

    def as_payload(self) -> dict:
        return asdict(self)


class CeleryNotifier:
    """Fire-and-forget submission to the notification worker.

    ``notify`` never raises: a delivery problem must not undo the booking
    change that triggered it. The worker owns retries and the delivery log.
    """

    def notify(self, event: NotificationEvent) -> None:
        from app.tasks.jobs import deliver_notification

        try:
            deliver_notification.delay(event.as_payload())
        except Exception:
            logger.exception(
                "notification submit failed event_type=%s booking_id=%s", event.event_type, event.booking_id
            )


def booking_rejected_notification(booking) -> NotificationEvent | None:
    if not (booking.guest_email or "").strip():
        return None
    name = html.escape(booking.guest_name or "Guest")
    return NotificationEvent(
        channel="email",
        recipient_type="guest",
        recipient_address=booking.guest_email.strip(),
        event_type="booking_rejected.guest.email",
        subject="Booking Update",
        body=f"<h2>Booking Update</h2><p>Hello {name}, your booking request was not approved.</p>",
        booking_id=booking.booking_id,
        session_id=booking.session_id,
        operator_id=booking.operator_id,
    )


def booking_confirmed_notifications(booking) -> list[NotificationEvent]:
    out = []
    ctx = dict(booking_id=booking.booking_id, session_id=booking.session_id, operator_id=booking.operator_id)
    name = booking.guest_name or "Guest"
    if (booking.guest_email or "").strip():
        out.append(NotificationEvent(
            channel="email",
            recipient_type="guest",
            recipient_address=booking.guest_email.strip(),
            event_type="booking_confirmed.guest.email",
            subject=f"Booking #{booking.booking_id} confirmed",
            body=(
                f"<h2>You're booked!</h2><p>Hello {html.escape(name)}, payment for booking "
                f"#{booking.booking_id} ({booking.headcount} diver(s)) was received and your seats are confirmed.</p>"
            ),
            **ctx,
        ))
    if (booking.guest_phone or "").strip():
        out.append(NotificationEvent(
            channel="whatsapp",
            recipient_type="guest",
            recipient_address=f"whatsapp:{booking.guest_phone.strip()}",
            event_type="booking_confirmed.guest.whatsapp",
            body=f"Hello {name}, booking #{booking.booking_id} is paid and confirmed. See you on the boat!",
            **ctx,
        ))
    return out


def send_email(to_email: str, subject: str, body_html: str) -> str:
    """Send via Resend. Returns the provider message id."""
    if not settings.RESEND_API_KEY or not settings.RESEND_FROM_EMAIL:
        raise NotificationError("Resend is not configured (RESEND_API_KEY / RESEND_FROM_EMAIL)")
    payload = {
        "from": settings.RESEND_FROM_EMAIL,
        "to": [to_email],
        "subject": subject,
        "html": body_html,
    }
    if settings.NOTIFY_REPLY_TO:
        payload["reply_to"] = settings.NOTIFY_REPLY_TO
    r = requests.post(
        RESEND_URL,
        json=payload,
        headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
        timeout=20,
    )
    if r.status_code >= 400:
        raise NotificationError(f"Resend error {r.status_code}: {r.text}")
    return str((r.json() or {}).get("id") or "")


def send_whatsapp(to: str, body: str) -> str:
    sid, token, sender = settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, settings.TWILIO_WHATSAPP_FROM
    if not (sid and token and sender):
        raise NotificationError("Twilio WhatsApp is not configured")
    r = requests.post(
        TWILIO_MESSAGES_URL.format(sid=sid),
        data={"From": sender, "To": to, "Body": body},
        auth=(sid, token),
        timeout=20,
    )
    if r.status_code >= 400:
        raise NotificationError(f"Twilio error {r.status_code}: {r.text}")
    return str((r.json() or {}).get("sid") or "")


def _send(n: Notification) -> None:
    if n.channel == "email":
        send_email(n.recipient_address, n.subject or "", n.body or "")
    elif n.channel == "whatsapp":
        send_whatsapp(n.recipient_address, n.body or "")
    else:
        raise NotificationError(f"unknown channel {n.channel!r}")


def _attempt(n: Notification) -> None:
    now = datetime.now(timezone.utc)
    n.attempts = (n.attempts or 0) + 1
    n.last_attempt_at = now
    n.updated_at = now
    try:
        _send(n)
    except Exception as e:
        n.status = "failed"
        n.error_message = str(e)[:500]
        logger.warning(
            "notification failed id=%s event_type=%s attempt=%s: %s",
            n.notification_id, n.event_type, n.attempts, e,
        )
        return
    n.status = "sent"
    n.sent_at = now
    n.error_message = None


def deliver(db: Session, payload: dict) -> Notification:
    """Log then send one notification. Every attempt ends as a sent or failed row."""
    event = NotificationEvent(**payload)
    n = Notification(
        recipient_type=event.recipient_type,
        recipient_address=event.recipient_address,
        channel=event.channel,
        event_type=event.event_type,
        subject=event.subject,
        body=event.body,
        status="queued",
        attempts=0,
        booking_id=event.booking_id,
        session_id=event.session_id,
        operator_id=event.operator_id,
    )
    db.add(n)
    db.commit()

    _attempt(n)
    db.commit()
    return n


def process_failed_notifications(db: Session, limit: int = 50, now: datetime | None = None) -> dict:
    """Retry failed notifications that still have attempts left. Returns counts.

    Queued rows are only picked up once they are stale (the worker died mid-send).
    """
    now = now or datetime.now(timezone.utc)
    pending = (
        db.query(Notification)
        .filter(
            or_(
                Notification.status == "failed",
                and_(Notification.status == "queued", Notification.created_at < now - STALE_QUEUED_AFTER),
            ),
            Notification.attempts < MAX_ATTEMPTS,
            Notification.body.isnot(None),
            Notification.body != "",
        )
        .order_by(Notification.created_at.asc())
        .limit(limit)
        .with_for_update(skip_locked=True)
        .all()
    )
    sent, failed = 0, 0
    for n in pending:
        _attempt(n)
        if n.status == "sent":
            sent += 1
        else:
            failed += 1
    if pending:
        db.commit()
    return {"processed": len(pending), "sent": sent, "failed": failed}
