from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from app.db.session import SessionLocal
from app.models.operator import Operator
from app.models.user import User, UserOperatorAffiliation
from app.models.dive_session import DiveSession, Vessel

DEMO_SLUG = "aqaba-reef-divers"
DEMO_OWNER_SUBJECT = "demo-owner"
HORIZON_DAYS = 14
# (local time, site, on the boat?)
DAILY_SESSIONS = [
    ("08:30", "Cedar Pride Wreck", True),
    ("13:00", "Japanese Garden", True),
    ("16:00", "Seven Sisters (shore)", False),
]


def ensure_operator(db: Session) -> Operator:
    op = db.query(Operator).filter(Operator.slug == DEMO_SLUG).first()
    if op:
        return op
    op = Operator(name="Aqaba Reef Divers", slug=DEMO_SLUG, timezone="Asia/Amman", default_currency="JOD")
    db.add(op)
    db.commit()
    return op


def ensure_owner(db: Session, operator: Operator) -> User:
    u = db.query(User).filter(User.auth_subject == DEMO_OWNER_SUBJECT).first()
    if not u:
        u = User(auth_subject=DEMO_OWNER_SUBJECT, email="owner@aqabareef.example", role="operator_owner")
        db.add(u)
        db.flush()
    exists = db.query(UserOperatorAffiliation).filter(
        UserOperatorAffiliation.user_id == u.user_id,
        UserOperatorAffiliation.operator_id == operator.operator_id,
    ).first()
    if not exists:
        db.add(UserOperatorAffiliation(user_id=u.user_id, operator_id=operator.operator_id, affiliation_type="owner"))
    db.commit()
    return u


def ensure_sessions(db: Session, operator: Operator) -> int:
    vessel = db.query(Vessel).filter(Vessel.operator_id == operator.operator_id).first()
    if not vessel:
        vessel = Vessel(operator_id=operator.operator_id, name="MV Coral Queen", max_capacity=12)
        db.add(vessel)
        db.flush()

    tz = ZoneInfo(operator.timezone)
    today = datetime.now(timezone.utc).astimezone(tz).date()
    created = 0
    for offset in range(HORIZON_DAYS):
        day = today + timedelta(days=offset)
        for hhmm, site, on_boat in DAILY_SESSIONS:
            h, m = (int(x) for x in hhmm.split(":"))
            when = datetime(day.year, day.month, day.day, h, m, tzinfo=tz).astimezone(timezone.utc)
            exists = db.query(DiveSession).filter(
                DiveSession.operator_id == operator.operator_id,
                DiveSession.dive_datetime == when,
                DiveSession.site_name == site,
            ).first()
            if exists:
                continue
            db.add(DiveSession(
                operator_id=operator.operator_id,
                dive_datetime=when,
                site_name=site,
                vessel_id=vessel.vessel_id if on_boat else None,
                price_per_diver=Decimal("45.000") if on_boat else Decimal("25.500"),
                session_currency=operator.default_currency,
            ))
            created += 1
    db.commit()
    return created


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM dive_operators LIMIT 1"))
        except ProgrammingError:
            db.rollback()
            print("[seed] dive_operators table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        op = ensure_operator(db)
        ensure_owner(db, op)
        created = ensure_sessions(db, op)
        print(f"[seed] operator={op.slug} sessions_created={created}")
    finally:
        db.close()


if __name__ == "__main__":
    run()
