# studio_bookings/schemas/course.py
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class CourseStatus(str, Enum):
    active = "active"
    cancelled = "cancelled"


class CourseCancel(BaseModel):
    reason: Optional[str] = None
    notify_participants: bool = True


class CancelCourseResult(BaseModel):
    course_id: str
    cancelled_signups: int = 0
    refunds_processed: int = 0
    refunds_failed: int = 0
    notifications_sent: int = 0
    total_refunded: Decimal = Decimal("0")
    # Signups whose Stripe refund failed and need to be refunded by hand
    failed_refund_signup_ids: List[str] = []
    message: str = ""
