"""
Dive schedule views: one operator-local day, or seven days from ``start_date``.

Day convention: "today" and the default week start (the Monday of the current
week) are taken in the operator's time zone. Cancelled sessions never appear.
"""
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundException, ValidationException
from app.models.dive_session import DiveSession, Vessel
from app.models.operator import Operator
from app.services.booking_service import operator_zone
from app.services.booking_state import ensure_utc, utcnow
from app.services.capacity import compute_capacity, session_headcounts
from app.services.money import minor_to_major_display, to_minor_units

UTC = ZoneInfo("UTC")


def _parse_date(raw: Optional[str], field: str) -> Optional[date]:
    if not raw:
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationException(f"{field} must be YYYY-MM-DD", code=f"invalid_{field}")


def _operator(db: Session, operator_id: int) -> Operator:
    operator = db.get(Operator, operator_id)
    if not operator:
        raise NotFoundException("Operator not found", code="operator_not_found")
    return operator


def _price(session: DiveSession) -> dict:
    if session.price_per_diver is None:
        return {"price_per_diver": None, "price_per_diver_minor": None}
    minor = to_minor_units(session.price_per_diver, session.session_currency)
    return {
        "price_per_diver": minor_to_major_display(minor, session.session_currency),
        "price_per_diver_minor": int(minor),
    }


def _sessions_between(db: Session, operator_id: int, tz: ZoneInfo, first_day: date, days: int) -> list[tuple[date, dict]]:
    """(local date, session view) for non-cancelled sessions in ``days`` local days from ``first_day``."""
    start_local = datetime(first_day.year, first_day.month, first_day.day, tzinfo=tz)
    end_local = start_local + timedelta(days=days)
    rows = db.execute(
        select(DiveSession, Vessel)
        .outerjoin(Vessel, Vessel.vessel_id == DiveSession.vessel_id)
        .where(
            DiveSession.operator_id == operator_id,
            DiveSession.cancelled_at.is_(None),
            DiveSession.dive_datetime >= start_local.astimezone(UTC),
            DiveSession.dive_datetime < end_local.astimezone(UTC),
        )
        .order_by(DiveSession.dive_datetime.asc(), DiveSession.session_id.asc())
    ).all()

    counts = session_headcounts(db, operator_id, [s.session_id for s, _ in rows])
    out = []
    for s, vessel in rows:
        local = ensure_utc(s.dive_datetime).astimezone(tz)
        confirmed, pending = counts.get(s.session_id, (0, 0))
        view = compute_capacity(vessel.max_capacity if vessel else None, confirmed, pending)
        out.append((local.date(), {
            "session_id": str(s.session_id),
            "start_time": local.strftime("%H:%M"),
            "dive_datetime_utc": ensure_utc(s.dive_datetime).isoformat(),
            "site_name": s.site_name,
            "vessel_name": vessel.name if vessel else None,
            "currency": s.session_currency,
            **_price(s),
            **view.as_dict(),
        }))
    return out


def _operator_block(operator: Operator, tz: ZoneInfo) -> dict:
    return {"operator_id": str(operator.operator_id), "name": operator.name, "timezone": str(tz)}


def week_schedule(db: Session, operator_id: int, start_date: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    operator = _operator(db, operator_id)
    tz = operator_zone(operator)
    start_day = _parse_date(start_date, "start_date")
    if start_day is None:
        today = (now or utcnow()).astimezone(tz).date()
        start_day = today - timedelta(days=today.weekday())

    days = {start_day + timedelta(days=i): [] for i in range(7)}
    for day, view in _sessions_between(db, operator_id, tz, start_day, 7):
        days[day].append(view)

    return {
        "ok": True,
        "operator": _operator_block(operator, tz),
        "week": {
            "start_date": start_day.isoformat(),
            "end_date": (start_day + timedelta(days=6)).isoformat(),
        },
        "days": [{"date": d.isoformat(), "sessions": sessions} for d, sessions in days.items()],
    }


def day_schedule(db: Session, operator_id: int, now: Optional[datetime] = None) -> dict:
    """Sessions on the operator's current local date."""
    operator = _operator(db, operator_id)
    tz = operator_zone(operator)
    today = (now or utcnow()).astimezone(tz).date()
    sessions = [view for _, view in _sessions_between(db, operator_id, tz, today, 1)]
    return {
        "ok": True,
        "operator": _operator_block(operator, tz),
        "date": today.isoformat(),
        "session_count": len(sessions),
        "sessions": sessions,
    }
