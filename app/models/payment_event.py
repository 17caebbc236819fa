from sqlalchemy import String, DateTime, Text, BigInteger, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

EVENT_STATUSES = ("pending", "received", "processed", "failed", "error")


class PaymentEvent(Base):
    """Append-only audit of gateway webhooks and internal payment actions.

    ``event_id`` is the only idempotency guard: a redelivered event is an
    insert-or-ignore, never a second row.
    """
    __tablename__ = "payment_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)  # evt_* or e.g. regen:<booking_id>:<cs_id>
    event_type: Mapped[str] = mapped_column(String(80))
    processing_status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    raw_event: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    booking_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    operator_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
