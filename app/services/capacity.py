from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from sqlalchemy import select, func, case, or_, and_
from sqlalchemy.orm import Session

from app.models.booking import Booking
from app.models.dive_session import DiveSession, Vessel

VESSEL_LIMITED = "vessel_limited"
SHORE_UNLIMITED = "shore_unlimited"


@dataclass(frozen=True)
class CapacityView:
    capacity_mode: str
    max_capacity: int | None
    confirmed_headcount: int
    pending_headcount: int
    available_if_confirmed_only: int | None
    available_if_pending_reserved: int | None
    is_over_capacity_confirmed_only: bool | None
    is_over_capacity_with_pending: bool | None
    capacity_note: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


def compute_capacity(max_capacity: int | None, confirmed_headcount: int, pending_headcount: int) -> CapacityView:
    """Both availability readings, best case and worst case; negatives mean oversold."""
    confirmed = int(confirmed_headcount or 0)
    pending = int(pending_headcount or 0)
    if max_capacity is None:
        return CapacityView(
            capacity_mode=SHORE_UNLIMITED,
            max_capacity=None,
            confirmed_headcount=confirmed,
            pending_headcount=pending,
            available_if_confirmed_only=None,
            available_if_pending_reserved=None,
            is_over_capacity_confirmed_only=None,
            is_over_capacity_with_pending=None,
            capacity_note="Shore dive (no vessel capacity limit)",
        )
    cap = int(max_capacity)
    return CapacityView(
        capacity_mode=VESSEL_LIMITED,
        max_capacity=cap,
        confirmed_headcount=confirmed,
        pending_headcount=pending,
        available_if_confirmed_only=cap - confirmed,
        available_if_pending_reserved=cap - (confirmed + pending),
        is_over_capacity_confirmed_only=confirmed > cap,
        is_over_capacity_with_pending=(confirmed + pending) > cap,
    )


def get_session_max_capacity(db: Session, operator_id: int, session_id: int) -> int | None:
    row = db.execute(
        select(Vessel.max_capacity)
        .select_from(DiveSession)
        .join(Vessel, Vessel.vessel_id == DiveSession.vessel_id)
        .where(DiveSession.session_id == session_id, DiveSession.operator_id == operator_id)
    ).first()
    return int(row[0]) if row else None


def get_capacity_consumed(
    db: Session,
    operator_id: int,
    session_id: int,
    now: datetime | None = None,
    exclude_booking_id: int | None = None,
) -> int:
    """Seats that could still turn into a paid seat: confirmed, or pending under a live hold.

    Expired holds simply stop counting; nothing sweeps them.
    """
    now = now or datetime.now(timezone.utc)
    q = (
        select(func.coalesce(func.sum(func.coalesce(Booking.headcount, 1)), 0))
        .where(
            Booking.operator_id == operator_id,
            Booking.session_id == session_id,
            or_(
                Booking.booking_status == "confirmed",
                and_(
                    Booking.booking_status == "pending",
                    Booking.hold_expires_at.is_not(None),
                    Booking.hold_expires_at > now,
                ),
            ),
        )
    )
    if exclude_booking_id is not None:
        q = q.where(Booking.booking_id != exclude_booking_id)
    return int(db.execute(q).scalar_one())


def session_headcounts(db: Session, operator_id: int, session_ids: list[int]) -> dict[int, tuple[int, int]]:
    """{session_id: (confirmed_headcount, pending_headcount)} for the schedule view."""
    if not session_ids:
        return {}
    headcount = func.coalesce(Booking.headcount, 1)
    rows = db.execute(
        select(
            Booking.session_id,
            func.sum(case((Booking.booking_status == "confirmed", headcount), else_=0)),
            func.sum(case((Booking.booking_status == "pending", headcount), else_=0)),
        )
        .where(Booking.operator_id == operator_id, Booking.session_id.in_(session_ids))
        .group_by(Booking.session_id)
    ).all()
    return {int(sid): (int(c or 0), int(p or 0)) for sid, c, p in rows}
