# studio_bookings/schemas/classification.py
"""
View models produced by the signup classifier for the teacher dashboard.

Everything here is immutable; the classifier derives new records instead of
editing the ones it was given.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from studio_bookings.schemas.signup import OfferStatus, PaymentStatus, SignupStatus
from studio_bookings.utils.dates import ensure_aware


class ExceptionType(str, Enum):
    payment_failed = "payment_failed"
    offer_expiring = "offer_expiring"
    pending_payment = "pending_payment"

    @property
    def priority(self) -> int:
        """Lower sorts first."""
        return EXCEPTION_PRIORITY[self]


EXCEPTION_PRIORITY = {
    ExceptionType.payment_failed: 1,
    ExceptionType.offer_expiring: 2,
    ExceptionType.pending_payment: 3,
}


class ModeFilter(str, Enum):
    active = "active"
    ended = "ended"
    needs_attention = "needs_attention"


class TimeFilter(str, Enum):
    today = "today"
    this_week = "this_week"
    upcoming = "upcoming"


class StatusFilter(str, Enum):
    all = "all"
    confirmed = "confirmed"
    waitlist = "waitlist"
    cancelled = "cancelled"


class PaymentFilter(str, Enum):
    all = "all"
    paid = "paid"
    refunded = "refunded"


class SignupDisplay(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    course_id: str
    course_title: str = ""
    participant_name: str
    participant_email: str
    class_datetime: datetime
    class_time: str = ""
    registered_at: Optional[datetime] = None
    status: SignupStatus
    payment_status: PaymentStatus
    note: Optional[str] = None
    waitlist_position: Optional[int] = None
    offer_status: Optional[OfferStatus] = None
    offer_expires_at: Optional[datetime] = None
    exception_type: Optional[ExceptionType] = None

    @field_validator("class_datetime", "registered_at", "offer_expires_at")
    @classmethod
    def _attach_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value)


class SignupBuckets(BaseModel):
    model_config = ConfigDict(frozen=True)

    exceptions: List[SignupDisplay] = Field(default_factory=list)
    confirmed: List[SignupDisplay] = Field(default_factory=list)
    waitlist: List[SignupDisplay] = Field(default_factory=list)
    cancelled: List[SignupDisplay] = Field(default_factory=list)


class SignupCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    confirmed: int = 0
    waitlist: int = 0
    cancelled: int = 0
    exceptions: int = 0


class SignupGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    course_id: str
    course_title: str
    class_date: datetime
    class_time: str
    signups: SignupBuckets
    counts: SignupCounts
    has_exceptions: bool


class GroupedSignupsOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: ModeFilter = ModeFilter.active
    time: Optional[TimeFilter] = TimeFilter.upcoming
    status: StatusFilter = StatusFilter.all
    payment: PaymentFilter = PaymentFilter.all
    search_query: str = ""


class SignupStats(BaseModel):
    exceptions: int = 0
    confirmed: int = 0
    waitlist: int = 0
    cancelled: int = 0
    groups: int = 0
    # Across the whole unfiltered input, for the "needs attention" badge
    total_exceptions: int = 0


class GroupedSignups(BaseModel):
    groups: List[SignupGroup]
    filtered_signups: List[SignupDisplay]
    stats: SignupStats
    has_active_filters: bool
