from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator


class BookingRequestIn(BaseModel):
    session_id: int
    headcount: int = 1
    guest_email: str  # plain str to allow .local and other dev domains
    guest_first_name: str = ""
    guest_last_name: str = ""
    guest_phone: Optional[str] = ""
    special_requests: Optional[str] = ""
    request_payment_link: bool = False  # self-service purchase: approve immediately

    @field_validator("guest_email")
    @classmethod
    def _email_not_blank(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if not v or "@" not in v:
            raise ValueError("guest_email is required")
        return v


class ManualReviewDecisionIn(BaseModel):
    decision: Literal["confirm", "cancel"]


# --- tagged action results -------------------------------------------------

class _ActionResult(BaseModel):
    ok: bool = True
    status: str = "success"
    booking_id: str


class NoopResult(_ActionResult):
    action: Literal[
        "noop_already_cancelled",
        "noop_cancelled",
        "noop_already_paid_confirmed",
        "noop_already_paid",
        "noop_already_confirmed",
        "noop_no_manual_review",
    ]


class CheckoutAlreadyCreated(_ActionResult):
    action: Literal["checkout_already_created"] = "checkout_already_created"
    stripe_checkout_session_id: str
    checkout_url: Optional[str] = None


class CheckoutCreated(_ActionResult):
    action: Literal["checkout_created"] = "checkout_created"
    stripe_checkout_session_id: str
    checkout_url: Optional[str] = None
    ledger_amount: str
    ledger_currency: str
    ledger_amount_minor: int
    charge_currency: str
    charge_amount_minor: int
    fx_rate_estimate: Optional[str] = None
    hold_expires_at: datetime


class PaymentLinkRegenerated(_ActionResult):
    action: Literal["payment_link_regenerated"] = "payment_link_regenerated"
    old_stripe_checkout_session_id: Optional[str] = None
    stripe_checkout_session_id: str
    checkout_url: Optional[str] = None
    hold_expires_at: datetime


class Rejected(_ActionResult):
    action: Literal["rejected"] = "rejected"


class ManualReviewResolved(_ActionResult):
    action: Literal["manual_review_confirmed", "manual_review_cancelled"]


ApproveResult = Annotated[Union[NoopResult, CheckoutAlreadyCreated, CheckoutCreated], Field(discriminator="action")]
RegenerateResult = Annotated[Union[NoopResult, PaymentLinkRegenerated], Field(discriminator="action")]
RejectResult = Annotated[Union[NoopResult, Rejected], Field(discriminator="action")]
ManualReviewResult = Annotated[Union[NoopResult, ManualReviewResolved], Field(discriminator="action")]


# --- read models -------------------------------------------------------------

class BookingOut(BaseModel):
    booking_id: str
    session_id: Optional[str] = None
    booking_status: str
    payment_status: str
    ui_status: str
    requires_manual_review_derived: bool
    headcount: int
    guest_name: str = ""
    guest_email: str = ""
    guest_phone: str = ""
    special_requests: str = ""
    source: str = ""
    payment_currency: Optional[str] = None
    payment_amount_minor: Optional[int] = None
    payment_amount_display: Optional[str] = None
    hold_expires_at: Optional[datetime] = None
    stripe_checkout_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    stripe_charge_currency: Optional[str] = None
    stripe_charge_amount_minor: Optional[int] = None
    fx_rate_estimate: Optional[str] = None
    fx_rate_source: Optional[str] = None
    manual_review_required: bool = False
    manual_review_reason: Optional[str] = None
    manual_review_flagged_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    session_date: Optional[str] = None
    start_time: Optional[str] = None
    site_name: Optional[str] = None


class DashboardBookingsOut(BaseModel):
    ok: bool = True
    status: str = "success"
    operator_id: str
    week: dict
    bookings: List[BookingOut]


class BookingRequestOut(BaseModel):
    ok: bool = True
    status: str = "success"
    booking: BookingOut
    payment: Optional[ApproveResult] = None
