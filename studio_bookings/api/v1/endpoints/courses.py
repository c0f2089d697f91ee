# studio_bookings/api/v1/endpoints/courses.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from studio_bookings.api import deps
from studio_bookings.core.email import EmailNotifier
from studio_bookings.core.exceptions import CourseActionError, CourseNotFoundError
from studio_bookings.db.session import get_db
from studio_bookings.schemas.course import CancelCourseResult, CourseCancel
from studio_bookings.schemas.token import TokenPayload
from studio_bookings.services import signup_actions
from studio_bookings.services.payment.stripe_gateway import StripeGateway

router = APIRouter(tags=["Courses"])


@router.post("/organizations/{org_id}/courses/{course_id}/cancel", response_model=CancelCourseResult)
def cancel_course(
    org_id: str,
    course_id: str,
    cancel_in: CourseCancel,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.require_org_member),
    gateway: StripeGateway = Depends(deps.get_gateway),
    notifier: EmailNotifier = Depends(deps.get_notifier),
):
    """
    Cancel a course: every confirmed and waitlisted signup becomes
    `course_cancelled` and Stripe payments are refunded. Refunds Stripe
    refuses are reported in the response rather than failing the request.
    """
    try:
        return signup_actions.cancel_course(
            db,
            organization_id=org_id,
            course_id=course_id,
            reason=cancel_in.reason,
            notify_participants=cancel_in.notify_participants,
            gateway=gateway,
            notifier=notifier,
        )
    except CourseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except CourseActionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
