from datetime import datetime, timezone
from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from app.models.payment_event import PaymentEvent

MAX_ERROR_LEN = 500

_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def record_event(
    db: Session,
    event_id: str,
    event_type: str,
    raw_event: dict | None = None,
    processing_status: str = "received",
    booking_id: int | None = None,
    operator_id: int | None = None,
    stripe_checkout_session_id: str | None = None,
) -> bool:
    """INSERT ... ON CONFLICT (event_id) DO NOTHING. Returns True when a new row was written.

    Does not commit: callers decide whether the row joins their transaction.
    """
    insert = _INSERTS.get(db.get_bind().dialect.name)
    if insert is None:
        raise RuntimeError(f"insert-or-ignore not supported on dialect {db.get_bind().dialect.name!r}")
    stmt = insert(PaymentEvent).values(
        event_id=event_id,
        event_type=event_type,
        raw_event=raw_event,
        processing_status=processing_status,
        booking_id=booking_id,
        operator_id=operator_id,
        stripe_checkout_session_id=stripe_checkout_session_id,
        received_at=datetime.now(timezone.utc),
    ).on_conflict_do_nothing(index_elements=["event_id"])
    return db.execute(stmt).rowcount == 1


def mark_event(db: Session, event_id: str, processing_status: str, error_message: str | None = None, **fields) -> None:
    values = {
        "processing_status": processing_status,
        "processed_at": datetime.now(timezone.utc),
        **fields,
    }
    if error_message is not None:
        values["error_message"] = error_message[:MAX_ERROR_LEN]
    db.execute(update(PaymentEvent).where(PaymentEvent.event_id == event_id).values(**values))
