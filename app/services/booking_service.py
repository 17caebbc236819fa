import logging
from datetime import datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select, case
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictException, NotFoundException, ValidationException
from app.models.booking import Booking, GuestIdentity
from app.models.dive_session import DiveSession
from app.models.operator import Operator
from app.schemas.booking import (
    BookingOut,
    CheckoutAlreadyCreated,
    CheckoutCreated,
    ManualReviewResolved,
    NoopResult,
    PaymentLinkRegenerated,
    Rejected,
)
from app.services.booking_state import (
    derive_ui_status,
    ensure_utc,
    extended_hold,
    is_paid_confirmed,
    rearmed_hold,
    requires_manual_review_derived,
    utcnow,
)
from app.services.capacity import get_capacity_consumed, get_session_max_capacity
from app.services.money import MoneyError, minor_to_major_display, minor_unit_exponent, normalize_currency, to_minor_units
from app.services.notification_service import booking_confirmed_notifications, booking_rejected_notification
from app.services.payment_events import record_event
from app.services.payment_service import ChargeQuote, PaymentConfig, compute_charge

logger = logging.getLogger(__name__)


def parse_booking_id(raw) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationException("Invalid booking_id", code="invalid_booking_id")
    if value <= 0:
        raise ValidationException("Invalid booking_id", code="invalid_booking_id")
    return value


def booking_out(b: Booking, session: DiveSession | None = None, tz: ZoneInfo | None = None, now: datetime | None = None) -> BookingOut:
    now = now or utcnow()
    local = None
    if session is not None and session.dive_datetime is not None:
        local = ensure_utc(session.dive_datetime).astimezone(tz or ZoneInfo("UTC"))
    return BookingOut(
        booking_id=str(b.booking_id),
        session_id=str(b.session_id) if b.session_id else None,
        booking_status=b.booking_status,
        payment_status=b.payment_status,
        ui_status=derive_ui_status(b, now),
        requires_manual_review_derived=requires_manual_review_derived(b),
        headcount=int(b.headcount or 1),
        guest_name=b.guest_name or "",
        guest_email=b.guest_email or "",
        guest_phone=b.guest_phone or "",
        special_requests=b.special_requests or "",
        source=b.source or "",
        payment_currency=b.payment_currency,
        payment_amount_minor=b.payment_amount_minor,
        payment_amount_display=(
            minor_to_major_display(b.payment_amount_minor, b.payment_currency)
            if b.payment_amount_minor is not None and b.payment_currency else None
        ),
        hold_expires_at=ensure_utc(b.hold_expires_at),
        stripe_checkout_session_id=b.stripe_checkout_session_id,
        stripe_payment_intent_id=b.stripe_payment_intent_id,
        stripe_charge_currency=b.stripe_charge_currency,
        stripe_charge_amount_minor=b.stripe_charge_amount_minor,
        fx_rate_estimate=str(b.fx_rate_estimate) if b.fx_rate_estimate is not None else None,
        fx_rate_source=b.fx_rate_source,
        manual_review_required=bool(b.manual_review_required),
        manual_review_reason=b.manual_review_reason,
        manual_review_flagged_at=ensure_utc(b.manual_review_flagged_at),
        paid_at=ensure_utc(b.paid_at),
        created_at=ensure_utc(b.created_at),
        updated_at=ensure_utc(b.updated_at),
        session_date=local.date().isoformat() if local else None,
        start_time=local.strftime("%H:%M") if local else None,
        site_name=session.site_name if session is not None else None,
    )


def operator_zone(operator: Operator | None) -> ZoneInfo:
    try:
        return ZoneInfo((operator.timezone if operator else None) or "UTC")
    except ZoneInfoNotFoundError:
        logger.warning("unknown operator timezone %r, falling back to UTC", operator.timezone)
        return ZoneInfo("UTC")


class BookingService:
    """Operator actions on a booking plus guest intake.

    Every mutating action locks the booking row (scoped to the operator), checks
    the current state, applies one transition and commits. Repeating an action
    on a booking that already moved on returns a ``noop_*`` result instead of
    failing. Notifications go out after the commit and never undo it.
    """

    def __init__(
        self,
        db: Session,
        gateway,
        config: PaymentConfig,
        notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.gateway = gateway
        self.config = config
        self.notifier = notifier
        self.clock = clock

    # --- helpers -----------------------------------------------------------

    def _lock_booking(self, operator_id: int, booking_id: int) -> Booking:
        b = self.db.execute(
            select(Booking)
            .where(Booking.booking_id == booking_id, Booking.operator_id == operator_id)
            .with_for_update()
        ).scalar_one_or_none()
        if not b:
            raise NotFoundException("Booking not found", code="booking_not_found")
        return b

    def _noop(self, b: Booking, action: str) -> NoopResult:
        booking_id = str(b.booking_id)
        self.db.rollback()  # releases the row lock
        return NoopResult(booking_id=booking_id, action=action)

    def _check_capacity(self, b: Booking, now: datetime) -> None:
        if not b.session_id:
            raise ValidationException("Booking has no valid session_id; cannot initiate payment", code="missing_session")
        requested = int(b.headcount or 0)
        if requested <= 0:
            raise ValidationException("Booking has invalid headcount", code="invalid_headcount")

        session = self.db.get(DiveSession, b.session_id)
        if not session or session.operator_id != b.operator_id:
            raise ValidationException("Booking session not found", code="missing_session")
        if session.cancelled_at is not None:
            raise ConflictException("Dive session has been cancelled", code="session_cancelled")

        max_cap = get_session_max_capacity(self.db, b.operator_id, b.session_id)
        if max_cap is None:
            return  # shore dive
        consumed = get_capacity_consumed(self.db, b.operator_id, b.session_id, now=now, exclude_booking_id=b.booking_id)
        if consumed + requested > max_cap:
            raise ConflictException(
                "Over capacity for this session",
                code="over_capacity",
                details={
                    "capacity": max_cap,
                    "capacity_consumed": consumed,
                    "requested_headcount": requested,
                },
            )

    def _quote(self, b: Booking) -> ChargeQuote:
        if b.payment_amount_minor is None or int(b.payment_amount_minor) <= 0 or not b.payment_currency:
            raise ValidationException(
                "Booking has no pricing snapshot; record the booking request price before initiating checkout",
                code="missing_pricing_snapshot",
            )
        return compute_charge(b.payment_amount_minor, b.payment_currency, self.config)

    def _checkout_metadata(self, b: Booking, quote: ChargeQuote) -> dict:
        return {
            "booking_id": b.booking_id,
            "operator_id": b.operator_id,
            "session_id": b.session_id,
            "headcount": b.headcount,
            "ledger_currency": quote.ledger_currency,
            "ledger_amount_minor": quote.ledger_amount_minor,
            "charge_currency": quote.charge_currency,
            "charge_amount_minor": quote.charge_amount_minor,
            "fx_rate_estimate": quote.fx_rate_estimate,
            "fx_rate_source": quote.fx_rate_source,
        }

    def _description(self, b: Booking, quote: ChargeQuote) -> str:
        ledger = minor_to_major_display(
            quote.ledger_amount_minor, quote.ledger_currency, display_decimals=minor_unit_exponent(quote.ledger_currency)
        )
        text = f"Booking #{b.booking_id} ({b.headcount} diver(s)) - {ledger} {quote.ledger_currency}"
        if quote.fx_rate_estimate is not None:
            text += f" charged in {quote.charge_currency} at est. rate {quote.fx_rate_estimate}"
        return text

    def _apply_checkout(self, b: Booking, checkout, quote: ChargeQuote, now: datetime, hold: datetime) -> None:
        # The ledger snapshot (payment_currency/payment_amount_minor) is never touched here.
        b.stripe_checkout_session_id = checkout.id
        b.stripe_charge_currency = quote.charge_currency
        b.stripe_charge_amount_minor = quote.charge_amount_minor
        b.fx_rate_estimate = quote.fx_rate_estimate
        b.fx_rate_estimate_at = now if quote.fx_rate_estimate is not None else None
        b.fx_rate_source = quote.fx_rate_source
        b.payment_checkout_created_at = now
        b.hold_expires_at = hold
        b.updated_at = now

    def _notify(self, events) -> None:
        for event in events:
            try:
                self.notifier.notify(event)
            except Exception:
                logger.exception("notify failed event_type=%s booking_id=%s", event.event_type, event.booking_id)

    # --- operator actions --------------------------------------------------

    def approve(self, operator_id: int, booking_id: int, force_new: bool = False):
        """Approve a pending booking: reserve seats and issue a Stripe checkout.

        An existing unpaid checkout is handed back as-is unless ``force_new``.
        """
        self.config.require_checkout_urls()
        now = self.clock()
        try:
            b = self._lock_booking(operator_id, booking_id)
            if b.booking_status == "cancelled":
                return self._noop(b, "noop_already_cancelled")
            if is_paid_confirmed(b):
                return self._noop(b, "noop_already_paid_confirmed")
            if b.payment_status == "paid":
                return self._noop(b, "noop_already_paid")

            if b.stripe_checkout_session_id and not force_new:
                existing_id = b.stripe_checkout_session_id
                bid = str(b.booking_id)
                self.db.rollback()
                existing = self.gateway.retrieve_checkout_session(existing_id)
                return CheckoutAlreadyCreated(
                    booking_id=bid,
                    stripe_checkout_session_id=existing_id,
                    checkout_url=existing.url,
                )

            result = self._issue_checkout(b, now, force_new)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("checkout created booking_id=%s session=%s", booking_id, result.stripe_checkout_session_id)
        return result

    def _issue_checkout(self, b: Booking, now: datetime, force_new: bool = False) -> CheckoutCreated:
        """Capacity, quote, gateway call and bookkeeping for a first checkout. Leaves the commit to the caller."""
        self._check_capacity(b, now)
        quote = self._quote(b)
        checkout = self.gateway.create_checkout_session(
            amount_minor=quote.charge_amount_minor,
            currency=quote.charge_currency,
            success_url=self.config.success_url,
            cancel_url=self.config.cancel_url,
            metadata=self._checkout_metadata(b, quote),
            product_name="Dive Booking",
            description=self._description(b, quote),
            customer_email=b.guest_email or None,
        )
        self._apply_checkout(b, checkout, quote, now, rearmed_hold(b.hold_expires_at, now, self.config.hold_window_minutes))
        record_event(
            self.db,
            f"checkout:{b.booking_id}:{checkout.id}",
            "checkout.created",
            raw_event={"booking_id": b.booking_id, "stripe_checkout_session_id": checkout.id, "force_new": force_new},
            processing_status="processed",
            booking_id=b.booking_id,
            operator_id=b.operator_id,
            stripe_checkout_session_id=checkout.id,
        )
        return CheckoutCreated(
            booking_id=str(b.booking_id),
            stripe_checkout_session_id=checkout.id,
            checkout_url=checkout.url,
            ledger_amount=minor_to_major_display(
                quote.ledger_amount_minor, quote.ledger_currency, display_decimals=minor_unit_exponent(quote.ledger_currency)
            ),
            ledger_currency=quote.ledger_currency,
            ledger_amount_minor=quote.ledger_amount_minor,
            charge_currency=quote.charge_currency,
            charge_amount_minor=quote.charge_amount_minor,
            fx_rate_estimate=str(quote.fx_rate_estimate) if quote.fx_rate_estimate is not None else None,
            hold_expires_at=ensure_utc(b.hold_expires_at),
        )

    def regenerate_payment_link(self, operator_id: int, booking_id: int):
        """Replace the checkout with a fresh one and extend the hold window."""
        self.config.require_checkout_urls()
        now = self.clock()
        try:
            b = self._lock_booking(operator_id, booking_id)
            if b.booking_status == "cancelled":
                return self._noop(b, "noop_cancelled")
            if is_paid_confirmed(b):
                return self._noop(b, "noop_already_paid_confirmed")
            if b.payment_status == "paid":
                return self._noop(b, "noop_already_paid")
            if b.booking_status == "confirmed":
                return self._noop(b, "noop_already_confirmed")

            self._check_capacity(b, now)
            quote = self._quote(b)
            old_id = b.stripe_checkout_session_id
            checkout = self.gateway.create_checkout_session(
                amount_minor=quote.charge_amount_minor,
                currency=quote.charge_currency,
                success_url=self.config.success_url,
                cancel_url=self.config.cancel_url,
                metadata={
                    **self._checkout_metadata(b, quote),
                    "action": "regenerate_payment_link",
                    "old_stripe_checkout_session_id": old_id,
                },
                product_name="Dive Booking (Regenerated Link)",
                description=self._description(b, quote),
                customer_email=b.guest_email or None,
            )
            self._apply_checkout(b, checkout, quote, now, extended_hold(b.hold_expires_at, now, self.config.hold_window_minutes))
            record_event(
                self.db,
                f"regen:{b.booking_id}:{checkout.id}",
                "checkout.link_regenerated",
                raw_event={
                    "booking_id": b.booking_id,
                    "old_stripe_checkout_session_id": old_id,
                    "stripe_checkout_session_id": checkout.id,
                },
                processing_status="processed",
                booking_id=b.booking_id,
                operator_id=b.operator_id,
                stripe_checkout_session_id=checkout.id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("payment link regenerated booking_id=%s old=%s new=%s", booking_id, old_id, checkout.id)
        return PaymentLinkRegenerated(
            booking_id=str(booking_id),
            old_stripe_checkout_session_id=old_id,
            stripe_checkout_session_id=checkout.id,
            checkout_url=checkout.url,
            hold_expires_at=ensure_utc(b.hold_expires_at),
        )

    def reject(self, operator_id: int, booking_id: int):
        now = self.clock()
        try:
            b = self._lock_booking(operator_id, booking_id)
            if b.booking_status == "cancelled":
                return self._noop(b, "noop_already_cancelled")
            b.booking_status = "cancelled"
            b.updated_at = now
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        event = booking_rejected_notification(b)
        if event:
            self._notify([event])
        return Rejected(booking_id=str(booking_id))

    def resolve_manual_review(self, operator_id: int, booking_id: int, decision: str):
        """Settle a late payment: confirm the seats (capacity permitting) or cancel."""
        if decision not in ("confirm", "cancel"):
            raise ValidationException("decision must be 'confirm' or 'cancel'", code="invalid_decision")
        now = self.clock()
        try:
            b = self._lock_booking(operator_id, booking_id)
            if not b.manual_review_required:
                return self._noop(b, "noop_no_manual_review")
            if decision == "confirm":
                if b.booking_status == "cancelled":
                    raise ConflictException(
                        "Booking is cancelled and cannot be confirmed",
                        code="booking_cancelled",
                        details={"booking_status": b.booking_status},
                    )
                self._check_capacity(b, now)
                b.booking_status = "confirmed"
            else:
                b.booking_status = "cancelled"
            b.manual_review_required = False
            b.updated_at = now
            record_event(
                self.db,
                f"manual_review:{b.booking_id}:{decision}",
                "booking.manual_review_resolved",
                raw_event={"booking_id": b.booking_id, "decision": decision, "reason": b.manual_review_reason},
                processing_status="processed",
                booking_id=b.booking_id,
                operator_id=b.operator_id,
                stripe_checkout_session_id=b.stripe_checkout_session_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if decision == "confirm":
            self._notify(booking_confirmed_notifications(b))
            return ManualReviewResolved(booking_id=str(booking_id), action="manual_review_confirmed")
        return ManualReviewResolved(booking_id=str(booking_id), action="manual_review_cancelled")

    # --- guest intake ------------------------------------------------------

    def _upsert_guest(self, email: str, first_name: str, last_name: str, phone: str) -> GuestIdentity:
        if self.config.enforce_unique_phone and phone:
            clash = self.db.execute(
                select(GuestIdentity).where(GuestIdentity.phone == phone, GuestIdentity.email != email)
            ).scalars().first()
            if clash:
                raise ConflictException(
                    "Phone number is already registered to another guest",
                    code="phone_in_use",
                )
        guest = self.db.execute(select(GuestIdentity).where(GuestIdentity.email == email)).scalar_one_or_none()
        if not guest:
            guest = GuestIdentity(email=email)
            self.db.add(guest)
        if first_name:
            guest.first_name = first_name
        if last_name:
            guest.last_name = last_name
        if phone:
            guest.phone = phone
        guest.updated_at = self.clock()
        self.db.flush()
        return guest

    def create_booking_request(
        self,
        session_id: int,
        headcount: int,
        guest_email: str,
        guest_first_name: str = "",
        guest_last_name: str = "",
        guest_phone: str = "",
        special_requests: str = "",
        source: str = "public",
    ) -> Booking:
        """Record a pending request with the price snapshot taken from the session now."""
        try:
            booking = self._add_booking_request(
                session_id, headcount, guest_email, guest_first_name, guest_last_name, guest_phone, special_requests, source
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(booking)
        logger.info("booking request created booking_id=%s session_id=%s", booking.booking_id, session_id)
        return booking

    def create_booking_with_checkout(
        self,
        session_id: int,
        headcount: int,
        guest_email: str,
        guest_first_name: str = "",
        guest_last_name: str = "",
        guest_phone: str = "",
        special_requests: str = "",
        source: str = "public",
    ) -> tuple[Booking, CheckoutCreated]:
        """Self-service purchase: the request and its first checkout commit together or not at all."""
        self.config.require_checkout_urls()
        now = self.clock()
        try:
            booking = self._add_booking_request(
                session_id, headcount, guest_email, guest_first_name, guest_last_name, guest_phone, special_requests, source
            )
            payment = self._issue_checkout(booking, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(booking)
        logger.info("booking request with checkout booking_id=%s session=%s", booking.booking_id, payment.stripe_checkout_session_id)
        return booking, payment

    def _add_booking_request(
        self,
        session_id: int,
        headcount: int,
        guest_email: str,
        guest_first_name: str,
        guest_last_name: str,
        guest_phone: str,
        special_requests: str,
        source: str,
    ) -> Booking:
        if headcount is None or int(headcount) < 1:
            raise ValidationException("headcount must be >= 1", code="invalid_headcount")
        headcount = int(headcount)

        session = self.db.get(DiveSession, session_id)
        if not session or session.cancelled_at is not None:
            raise NotFoundException("Dive session not found", code="session_not_found")
        if session.price_per_diver is None:
            raise ValidationException("Dive session has no price", code="session_not_priced")
        currency = normalize_currency(session.session_currency)
        if not currency:
            raise ValidationException("Dive session has an invalid currency", code="invalid_currency")
        try:
            unit_minor = int(to_minor_units(session.price_per_diver, currency))
        except MoneyError as e:
            raise ValidationException(str(e), code="invalid_price") from e

        email = guest_email.strip().lower()
        phone = (guest_phone or "").strip()
        now = self.clock()
        guest = self._upsert_guest(email, guest_first_name.strip(), guest_last_name.strip(), phone)
        booking = Booking(
            operator_id=session.operator_id,
            session_id=session.session_id,
            guest_id=guest.guest_id,
            guest_name=" ".join(p for p in (guest_first_name.strip(), guest_last_name.strip()) if p),
            guest_email=email,
            guest_phone=phone,
            special_requests=(special_requests or "").strip(),
            source=source,
            headcount=headcount,
            booking_status="pending",
            payment_status="unpaid",
            payment_currency=currency,
            payment_amount_minor=unit_minor * headcount,
            created_at=now,
            updated_at=now,
        )
        self.db.add(booking)
        self.db.flush()
        return booking

    # --- dashboard ---------------------------------------------------------

    def list_week(self, operator_id: int, week_start: str | None = None) -> dict:
        """Bookings whose session falls in the operator-local week starting ``week_start``."""
        operator = self.db.get(Operator, operator_id)
        tz = operator_zone(operator)
        now = self.clock()
        if week_start:
            try:
                start_day = datetime.strptime(week_start, "%Y-%m-%d").date()
            except ValueError:
                raise ValidationException("week_start must be YYYY-MM-DD", code="invalid_week_start")
        else:
            today = now.astimezone(tz).date()
            start_day = today - timedelta(days=today.weekday())
        start_local = datetime(start_day.year, start_day.month, start_day.day, tzinfo=tz)
        end_local = start_local + timedelta(days=7)

        rows = self.db.execute(
            select(Booking, DiveSession)
            .join(DiveSession, DiveSession.session_id == Booking.session_id)
            .where(
                Booking.operator_id == operator_id,
                DiveSession.operator_id == operator_id,
                DiveSession.cancelled_at.is_(None),
                DiveSession.dive_datetime >= start_local.astimezone(ZoneInfo("UTC")),
                DiveSession.dive_datetime < end_local.astimezone(ZoneInfo("UTC")),
            )
            .order_by(
                case((Booking.booking_status == "pending", 0), else_=1),
                DiveSession.dive_datetime.asc(),
                Booking.created_at.asc(),
            )
        ).all()

        return {
            "operator_id": str(operator_id),
            "week": {
                "start_date": start_day.isoformat(),
                "end_date": (start_day + timedelta(days=6)).isoformat(),
                "timezone": str(tz),
            },
            "bookings": [booking_out(b, s, tz, now) for b, s in rows],
        }
