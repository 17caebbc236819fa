from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_clock, get_operator_scope
from app.core.exceptions import ValidationException
from app.db.session import get_db
from app.models.operator import Operator
from app.models.user import User
from app.services.booking_service import operator_zone
from app.services.operator_scope import OperatorScope
from app.services.schedule_service import day_schedule, week_schedule

router = APIRouter(prefix="/me", tags=["me"])

MANAGER_AFFILIATIONS = ("owner", "admin")


@router.get("")
def me(scope: OperatorScope = Depends(get_operator_scope), db: Session = Depends(get_db), clock=Depends(get_clock)):
    """Who is calling and which operator they act for. The dashboard routes from this."""
    user = db.get(User, scope.user_id)
    operator = db.get(Operator, scope.operator_id)
    return {
        "ok": True,
        "authenticated": True,
        "identity": {"auth_subject": scope.auth_subject, "email": user.email or None},
        "user": {"user_id": str(user.user_id), "role": user.role},
        "operator": {
            "operator_id": str(scope.operator_id),
            "name": operator.name if operator else None,
            "timezone": str(operator_zone(operator)),
            "affiliation": scope.affiliation_type,
        },
        "permissions": {
            "can_view_schedule": True,
            "can_manage_bookings": True,
            "can_manage_operator": scope.affiliation_type in MANAGER_AFFILIATIONS,
        },
        "server_time_utc": clock().isoformat(),
    }


@router.get("/schedule/today")
def my_schedule_today(scope: OperatorScope = Depends(get_operator_scope), db: Session = Depends(get_db), clock=Depends(get_clock)):
    return day_schedule(db, scope.operator_id, now=clock())


@router.get("/schedule/week")
def my_schedule_week(
    start_date: Optional[str] = None,
    scope: OperatorScope = Depends(get_operator_scope),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    # start_date is required here, unlike the public week view.
    if not start_date:
        raise ValidationException("start_date must be YYYY-MM-DD", code="invalid_start_date")
    return week_schedule(db, scope.operator_id, start_date, now=clock())
