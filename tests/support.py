import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from jose import jwt

from app.models.booking import Booking
from app.models.dive_session import DiveSession, Vessel
from app.models.operator import Operator
from app.models.user import User, UserOperatorAffiliation
from app.services.stripe_client import CheckoutSession

# A Monday, 09:00 UTC
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway:
    def __init__(self):
        self.created = []
        self.retrieved = []
        self.fail_with = None

    def create_checkout_session(self, **kwargs) -> CheckoutSession:
        if self.fail_with:
            raise self.fail_with
        n = len(self.created) + 1
        cs = CheckoutSession(
            id=f"cs_test_{n}",
            url=f"https://checkout.stripe.test/c/pay/cs_test_{n}",
            status="open",
        )
        self.created.append({**kwargs, "id": cs.id})
        return cs

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        self.retrieved.append(session_id)
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/c/pay/{session_id}", status="open")


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event) -> None:
        self.events.append(event)

    @property
    def event_types(self):
        return [e.event_type for e in self.events]


class Factory:
    def __init__(self, db):
        self.db = db
        self._n = 0

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def operator(self, name="Aqaba Reef Divers", currency="JOD", tz="Asia/Amman") -> Operator:
        self._n += 1
        return self._save(Operator(name=name, slug=f"op-{self._n}", timezone=tz, default_currency=currency))

    def vessel(self, operator, capacity=10) -> Vessel:
        return self._save(Vessel(operator_id=operator.operator_id, name="MV Coral Queen", max_capacity=capacity))

    def session(self, operator, vessel=None, when=None, price="45.000", currency=None, cancelled=False, site="Cedar Pride") -> DiveSession:
        return self._save(DiveSession(
            operator_id=operator.operator_id,
            vessel_id=vessel.vessel_id if vessel else None,
            dive_datetime=when or NOW + timedelta(days=1),
            site_name=site,
            price_per_diver=Decimal(price) if price is not None else None,
            session_currency=currency or operator.default_currency,
            cancelled_at=NOW if cancelled else None,
        ))

    def booking(self, operator, session=None, headcount=2, booking_status="pending", payment_status="unpaid",
                amount_minor=90000, currency=None, hold_expires_at=None, checkout_id=None, **kw) -> Booking:
        return self._save(Booking(
            operator_id=operator.operator_id,
            session_id=session.session_id if session else None,
            headcount=headcount,
            booking_status=booking_status,
            payment_status=payment_status,
            payment_amount_minor=amount_minor,
            payment_currency=currency if currency is not None else operator.default_currency,
            hold_expires_at=hold_expires_at,
            stripe_checkout_session_id=checkout_id,
            guest_name=kw.pop("guest_name", "Rana Haddad"),
            guest_email=kw.pop("guest_email", "rana@example.com"),
            guest_phone=kw.pop("guest_phone", "+962790000000"),
            **kw,
        ))

    def user(self, *operators, subject="auth|staff-1", active=True, active_operator=None, affiliation_type="staff") -> User:
        u = User(auth_subject=subject, email=f"{subject}@example.com", is_active=active,
                 active_operator_id=active_operator.operator_id if active_operator else None)
        self.db.add(u)
        self.db.flush()
        for op in operators:
            self.db.add(UserOperatorAffiliation(user_id=u.user_id, operator_id=op.operator_id, affiliation_type=affiliation_type))
        self.db.commit()
        self.db.refresh(u)
        return u


def make_token(subject: str) -> str:
    return jwt.encode({"sub": subject}, os.environ["AUTH_JWT_SECRET"], algorithm="HS256")


def auth_headers(subject: str) -> dict:
    return {"Authorization": f"Bearer {make_token(subject)}"}


def stripe_signature(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode() + payload
    sig = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def checkout_completed_event(booking, event_id="evt_test_1", payment_intent="pi_test_1", cs_id=None) -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": cs_id or booking.stripe_checkout_session_id or "cs_unknown",
            "object": "checkout.session",
            "payment_intent": payment_intent,
            "metadata": {"booking_id": str(booking.booking_id)},
        }},
    }).encode()


