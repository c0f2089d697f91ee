# studio_bookings/schemas/signup.py
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupStatus(str, Enum):
    confirmed = "confirmed"
    waitlist = "waitlist"
    cancelled = "cancelled"
    course_cancelled = "course_cancelled"


CANCELLED_STATUSES = (SignupStatus.cancelled.value, SignupStatus.course_cancelled.value)


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"
    refunded = "refunded"


class OfferStatus(str, Enum):
    pending = "pending"
    claimed = "claimed"
    expired = "expired"


class SignupCreate(BaseModel):
    """Fields the reconciler or the waitlist needs to create a signup."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    course_id: str
    organization_id: str
    participant_name: str
    participant_email: str
    participant_phone: Optional[str] = None
    status: SignupStatus = SignupStatus.confirmed
    payment_status: PaymentStatus = PaymentStatus.pending
    waitlist_position: Optional[int] = None
    stripe_checkout_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    amount_paid: Optional[Decimal] = None
    is_drop_in: bool = False
    session_id: Optional[str] = None
    class_date: Optional[date] = None
    class_time: Optional[str] = None


class WaitlistJoin(BaseModel):
    participant_name: str = Field(..., min_length=1, json_schema_extra={"example": "Kari Nordmann"})
    participant_email: EmailStr = Field(..., json_schema_extra={"example": "kari@example.no"})
    participant_phone: Optional[str] = None


class SignupCancel(BaseModel):
    refund: bool = False
    reason: Optional[str] = None


class Signup(BaseModel):
    id: str
    course_id: str
    organization_id: str
    participant_name: str
    participant_email: str
    participant_phone: Optional[str] = None
    status: SignupStatus
    payment_status: PaymentStatus
    waitlist_position: Optional[int] = None
    offer_status: Optional[OfferStatus] = None
    offer_expires_at: Optional[datetime] = None
    amount_paid: Optional[Decimal] = None
    is_drop_in: bool = False
    class_date: Optional[date] = None
    class_time: Optional[str] = None
    note: Optional[str] = None
    registered_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CancelSignupResult(BaseModel):
    signup: Signup
    refunded: bool
    refund_amount: Decimal = Decimal("0")
