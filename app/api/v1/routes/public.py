from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_booking_service, get_clock
from app.db.session import get_db
from app.schemas.booking import BookingRequestIn, BookingRequestOut
from app.services.booking_service import BookingService, booking_out
from app.services.schedule_service import day_schedule, week_schedule

router = APIRouter(tags=["public"])


@router.post("/public/bookings", response_model=BookingRequestOut)
def create_public_booking(body: BookingRequestIn, svc: BookingService = Depends(get_booking_service)):
    """Guest booking request. With ``request_payment_link`` the checkout is issued right away."""
    request = dict(
        session_id=body.session_id,
        headcount=body.headcount,
        guest_email=body.guest_email,
        guest_first_name=body.guest_first_name,
        guest_last_name=body.guest_last_name,
        guest_phone=body.guest_phone or "",
        special_requests=body.special_requests or "",
    )
    payment = None
    if body.request_payment_link:
        booking, payment = svc.create_booking_with_checkout(**request)
    else:
        booking = svc.create_booking_request(**request)
    return BookingRequestOut(booking=booking_out(booking, now=svc.clock()), payment=payment)


@router.get("/operators/{operator_id}/schedule/week")
def get_week_schedule(
    operator_id: int,
    start_date: Optional[str] = None,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    return week_schedule(db, operator_id, start_date, now=clock())


@router.get("/operators/{operator_id}/schedule/today")
def get_today_schedule(operator_id: int, db: Session = Depends(get_db), clock=Depends(get_clock)):
    return day_schedule(db, operator_id, now=clock())
