"""Stripe webhook reconciliation.

The webhook is the only place a booking becomes paid. A payment that lands
after its hold ran out is still recorded as paid, but the seats are not
confirmed: the booking is flagged for an operator to resolve.
"""
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.booking import Booking
from app.services.booking_state import LATE_PAYMENT_REASON, hold_expired, utcnow
from app.services.notification_service import booking_confirmed_notifications
from app.services.payment_events import mark_event, record_event

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
CANCELLED_PAYMENT_REASON = "payment_received_for_cancelled_booking"


@dataclass
class WebhookOutcome:
    outcome: str
    booking_id: int | None = None
    operator_id: int | None = None
    stripe_checkout_session_id: str | None = None


def _field(obj, key, default=None):
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


class WebhookReconciler:
    def __init__(self, db: Session, notifier, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.notifier = notifier
        self.clock = clock

    def record(self, event_id: str, event_type: str, raw_event: dict | None) -> None:
        """Audit row in its own transaction; losing it must not block reconciliation."""
        try:
            record_event(self.db, event_id, event_type, raw_event=raw_event, processing_status="received")
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("payment event insert failed event_id=%s", event_id)

    def handle(self, event) -> dict:
        """Process one verified event. Always returns a 200 body; handler errors are logged."""
        event_id = str(_field(event, "id", ""))
        event_type = str(_field(event, "type", ""))
        try:
            if event_type == CHECKOUT_COMPLETED:
                result = self._checkout_completed(_field(_field(event, "data", {}), "object", {}))
            else:
                result = WebhookOutcome(outcome="ignored")
            mark_event(
                self.db,
                event_id,
                "processed",
                booking_id=result.booking_id,
                operator_id=result.operator_id,
                stripe_checkout_session_id=result.stripe_checkout_session_id,
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception("stripe webhook handler error event_id=%s type=%s", event_id, event_type)
            try:
                mark_event(self.db, event_id, "error", error_message=str(e))
                self.db.commit()
            except Exception:
                self.db.rollback()
                logger.exception("payment event error mark failed event_id=%s", event_id)
            return {"ok": True, "received": True, "warning": "handler_error_logged"}

        logger.info("stripe webhook event_id=%s type=%s outcome=%s", event_id, event_type, result.outcome)
        if result.outcome == "confirmed":
            self._notify_confirmed(result.booking_id)
        return {"ok": True, "received": True, "outcome": result.outcome}

    def _notify_confirmed(self, booking_id: int) -> None:
        b = self.db.get(Booking, booking_id)
        for event in booking_confirmed_notifications(b) if b else []:
            try:
                self.notifier.notify(event)
            except Exception:
                logger.exception("notify failed event_type=%s booking_id=%s", event.event_type, booking_id)

    def _lock(self, booking_id_raw, checkout_session_id: str) -> Booking | None:
        booking_id = None
        try:
            booking_id = int(str(booking_id_raw).strip()) if booking_id_raw not in (None, "") else None
        except ValueError:
            logger.warning("stripe webhook: unusable booking_id in metadata %r", booking_id_raw)
        if booking_id is not None:
            b = self.db.execute(
                select(Booking).where(Booking.booking_id == booking_id).with_for_update()
            ).scalar_one_or_none()
            if b:
                return b
        if checkout_session_id:
            return self.db.execute(
                select(Booking).where(Booking.stripe_checkout_session_id == checkout_session_id).with_for_update()
            ).scalar_one_or_none()
        return None

    def _checkout_completed(self, session_obj) -> WebhookOutcome:
        cs_id = str(_field(session_obj, "id", ""))
        metadata = _field(session_obj, "metadata", {}) or {}
        payment_intent = _field(session_obj, "payment_intent")
        now = self.clock()

        booking_id_raw = _field(metadata, "booking_id")
        b = self._lock(booking_id_raw, cs_id)
        if not b:
            logger.error("stripe webhook: booking not found checkout_session=%s booking_id=%r", cs_id, booking_id_raw)
            return WebhookOutcome(outcome="booking_not_found", stripe_checkout_session_id=cs_id or None)

        result = WebhookOutcome(
            outcome="",
            booking_id=b.booking_id,
            operator_id=b.operator_id,
            stripe_checkout_session_id=cs_id or b.stripe_checkout_session_id,
        )
        if b.payment_status == "paid":
            result.outcome = "noop_already_paid"
            return result

        if payment_intent:
            b.stripe_payment_intent_id = str(payment_intent)
        b.payment_status = "paid"
        b.paid_at = now
        b.updated_at = now

        if b.booking_status == "cancelled":
            # Cancelled stays cancelled; the captured money still needs a human.
            b.manual_review_required = True
            b.manual_review_reason = CANCELLED_PAYMENT_REASON
            b.manual_review_flagged_at = now
            self.db.flush()
            logger.warning("payment for cancelled booking booking_id=%s", b.booking_id)
            result.outcome = "cancelled_booking_flagged"
            return result

        if hold_expired(b.hold_expires_at, now):
            b.manual_review_required = True
            b.manual_review_reason = LATE_PAYMENT_REASON
            b.manual_review_flagged_at = now
            self.db.flush()
            logger.warning("late payment booking_id=%s hold_expires_at=%s", b.booking_id, b.hold_expires_at)
            result.outcome = "manual_review"
            return result

        b.booking_status = "confirmed"
        self.db.flush()
        result.outcome = "confirmed"
        return result
