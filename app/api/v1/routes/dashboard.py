from typing import Optional
from fastapi import APIRouter, Depends, Response

from app.api.deps import get_booking_service, get_operator_scope
from app.schemas.booking import (
    ApproveResult,
    DashboardBookingsOut,
    ManualReviewDecisionIn,
    ManualReviewResult,
    RegenerateResult,
    RejectResult,
)
from app.services.booking_service import BookingService, parse_booking_id
from app.services.operator_scope import OperatorScope

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/bookings", response_model=DashboardBookingsOut)
def list_bookings(
    response: Response,
    week_start: Optional[str] = None,
    scope: OperatorScope = Depends(get_operator_scope),
    svc: BookingService = Depends(get_booking_service),
):
    """Bookings for the operator-local week, pending requests first."""
    response.headers["Cache-Control"] = "no-store"
    return svc.list_week(scope.operator_id, week_start)


@router.post("/bookings/{booking_id}/approve", response_model=ApproveResult)
def approve_booking(
    booking_id: str,
    force_new: Optional[str] = None,
    scope: OperatorScope = Depends(get_operator_scope),
    svc: BookingService = Depends(get_booking_service),
):
    force = (force_new or "").strip().lower() in ("1", "true", "yes")
    return svc.approve(scope.operator_id, parse_booking_id(booking_id), force_new=force)


@router.post("/bookings/{booking_id}/payment-link/regenerate", response_model=RegenerateResult)
def regenerate_payment_link(
    booking_id: str,
    scope: OperatorScope = Depends(get_operator_scope),
    svc: BookingService = Depends(get_booking_service),
):
    return svc.regenerate_payment_link(scope.operator_id, parse_booking_id(booking_id))


@router.post("/bookings/{booking_id}/reject", response_model=RejectResult)
def reject_booking(
    booking_id: str,
    scope: OperatorScope = Depends(get_operator_scope),
    svc: BookingService = Depends(get_booking_service),
):
    return svc.reject(scope.operator_id, parse_booking_id(booking_id))


@router.post("/bookings/{booking_id}/manual-review/resolve", response_model=ManualReviewResult)
def resolve_manual_review(
    booking_id: str,
    body: ManualReviewDecisionIn,
    scope: OperatorScope = Depends(get_operator_scope),
    svc: BookingService = Depends(get_booking_service),
):
    return svc.resolve_manual_review(scope.operator_id, parse_booking_id(booking_id), body.decision)
