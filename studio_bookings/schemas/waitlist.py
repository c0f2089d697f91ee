# studio_bookings/schemas/waitlist.py
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ClaimTokenStatus(str, Enum):
    valid = "valid"
    claimed = "claimed"
    expired = "expired"
    invalid = "invalid"


class ClaimTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ClaimSignupSummary(BaseModel):
    id: str
    participant_name: str
    participant_email: str
    offer_expires_at: Optional[datetime] = None


class ClaimCourseSummary(BaseModel):
    id: str
    title: str
    price: Optional[Decimal] = None
    location: Optional[str] = None
    time_schedule: Optional[str] = None
    start_date: Optional[date] = None


class ClaimOrganizationSummary(BaseModel):
    id: str
    name: str
    slug: Optional[str] = None


class ClaimValidation(BaseModel):
    """What the claim page needs to render an offer, or to explain why it cannot."""

    status: ClaimTokenStatus
    signup: Optional[ClaimSignupSummary] = None
    course: Optional[ClaimCourseSummary] = None
    organization: Optional[ClaimOrganizationSummary] = None


class PromotionResult(BaseModel):
    course_id: str
    promoted: bool
    # True when a prepaid waitlist signup got the seat without an offer
    confirmed: bool = False
    spots_available: int
    signup_id: Optional[str] = None
    offer_expires_at: Optional[datetime] = None
    reason: Optional[str] = None


class ExpiredOffersResult(BaseModel):
    expired: int
    signup_ids: List[str] = []
    promotions: List[PromotionResult] = []
