# studio_bookings/services/signup_projection.py
from typing import Iterable, List, Optional

from studio_bookings.models.course import Course
from studio_bookings.models.signup import Signup
from studio_bookings.schemas.classification import SignupDisplay
from studio_bookings.utils.dates import (
    combine_class_datetime,
    ensure_aware,
    extract_time,
    parse_clock,
    utcnow,
)


def signup_to_display(signup: Signup, course: Optional[Course] = None) -> SignupDisplay:
    """
    Build the classifier's view of a stored signup.

    Drop-ins carry their own class date/time; everyone else attends on the
    course start date at the time named in the course schedule.
    """
    course = course or signup.course

    if signup.class_date is not None:
        class_time = signup.class_time or ""
        class_datetime = combine_class_datetime(signup.class_date, parse_clock(class_time))
    elif course is not None and course.start_date is not None:
        class_time = extract_time(course.time_schedule) or ""
        class_datetime = combine_class_datetime(course.start_date, parse_clock(class_time))
    else:
        # No schedule at all; fall back to when the booking was made
        class_time = ""
        class_datetime = ensure_aware(signup.created_at) or utcnow()

    return SignupDisplay(
        id=signup.id,
        course_id=signup.course_id,
        course_title=course.title if course is not None else "",
        participant_name=signup.participant_name,
        participant_email=signup.participant_email,
        class_datetime=class_datetime,
        class_time=class_time,
        registered_at=signup.registered_at,
        status=signup.status,
        payment_status=signup.payment_status,
        note=signup.note,
        waitlist_position=signup.waitlist_position,
        offer_status=signup.offer_status,
        offer_expires_at=signup.offer_expires_at,
    )


def project_signups(signups: Iterable[Signup]) -> List[SignupDisplay]:
    return [signup_to_display(signup) for signup in signups]
