# studio_bookings/services/signup_actions.py
"""
Actions a teacher takes from the dashboard: on a single signup, or on a
whole course.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from studio_bookings import crud
from studio_bookings.core.config import settings
from studio_bookings.core.email import COURSE_CANCELLED, SIGNUP_CANCELLED, EmailNotifier
from studio_bookings.core.exceptions import (
    CourseActionError,
    CourseNotFoundError,
    RefundFailedError,
    SignupActionError,
    SignupNotFoundError,
)
from studio_bookings.models.signup import Signup
from studio_bookings.schemas.course import CancelCourseResult, CourseStatus
from studio_bookings.schemas.signup import CANCELLED_STATUSES, PaymentStatus, SignupStatus
from studio_bookings.services.payment.stripe_gateway import StripeGateway
from studio_bookings.services.waitlist_service import WaitlistService, promote_if_possible

logger = logging.getLogger(__name__)

NOTE_SEPARATOR = "\n---\n"


def append_note(existing: Optional[str], addition: str) -> str:
    if not existing:
        return addition
    return f"{existing}{NOTE_SEPARATOR}{addition}"


def _get_signup(db: Session, organization_id: str, signup_id: str) -> Signup:
    signup = crud.signup.get(db, id=signup_id)
    # Signups from another organization are reported as missing
    if not signup or signup.organization_id != organization_id:
        raise SignupNotFoundError(f"Signup {signup_id} not found")
    return signup


def mark_as_paid(db: Session, *, organization_id: str, signup_id: str) -> Signup:
    """Record a payment taken outside Stripe, e.g. cash at the door."""
    signup = _get_signup(db, organization_id, signup_id)
    if signup.payment_status == PaymentStatus.paid.value:
        return signup

    signup = crud.signup.mark_paid(db, signup=signup)
    logger.info(f"Signup {signup.id} marked as paid")
    return signup


def cancel_signup(
    db: Session,
    *,
    organization_id: str,
    signup_id: str,
    refund: bool,
    reason: Optional[str],
    gateway: StripeGateway,
    notifier: EmailNotifier,
    waitlist: WaitlistService,
) -> tuple[Signup, bool, Decimal]:
    """
    Cancel a signup on the teacher's behalf, optionally refunding it.

    The refund is created before anything is written. If Stripe refuses it,
    RefundFailedError propagates and the signup is left as it was.

    Returns:
        (signup, refunded, refund_amount)
    """
    signup = _get_signup(db, organization_id, signup_id)
    if signup.status in CANCELLED_STATUSES:
        raise SignupActionError("Signup is already cancelled")

    refunded = False
    refund_amount = Decimal("0")
    if refund and signup.payment_status == PaymentStatus.paid.value and signup.stripe_payment_intent_id:
        gateway.create_refund(
            signup.stripe_payment_intent_id,
            idempotency_key=f"teacher-cancel-{signup.id}",
        )
        refunded = True
        refund_amount = Decimal(signup.amount_paid or 0)
    elif refund:
        logger.info(f"Signup {signup.id} has no captured Stripe payment, cancelling without refund")

    note = None
    if reason:
        note = append_note(signup.note, f"Avmeldt av instruktør: {reason}")

    freed_seat = signup.status == SignupStatus.confirmed.value
    signup = crud.signup.cancel(db, signup=signup, refunded=refunded, note=note)
    logger.info(f"Signup {signup.id} cancelled by teacher (refunded={refunded})")

    course = signup.course
    organization = crud.course.get_organization(db, organization_id=signup.organization_id)
    try:
        notifier.send(
            signup.participant_email,
            SIGNUP_CANCELLED,
            {
                "participantName": signup.participant_name,
                "courseName": course.title if course else "Kurs",
                "reason": reason,
                "refunded": refunded,
                "refundAmount": str(refund_amount),
                "organizationName": organization.name if organization else settings.DEFAULT_ORGANIZATION_NAME,
            },
        )
    except Exception:
        logger.exception(f"Cancellation email for signup {signup.id} failed")

    if freed_seat:
        promote_if_possible(waitlist, db, signup.course_id)

    return signup, refunded, refund_amount


def cancel_course(
    db: Session,
    *,
    organization_id: str,
    course_id: str,
    reason: Optional[str],
    notify_participants: bool,
    gateway: StripeGateway,
    notifier: EmailNotifier,
) -> CancelCourseResult:
    """
    Cancel a whole course and refund everyone who paid through Stripe.

    The course is marked cancelled before any refund is attempted. A refund
    Stripe refuses is counted in `refunds_failed` and leaves that signup's
    payment status as it was; the signup is still moved to `course_cancelled`.
    """
    course = crud.course.get(db, id=course_id)
    if not course or course.organization_id != organization_id:
        raise CourseNotFoundError(f"Course {course_id} not found")
    if course.status == CourseStatus.cancelled.value:
        raise CourseActionError("Course is already cancelled")

    signups = crud.signup.get_active_for_course(db, course_id=course.id)
    course = crud.course.mark_cancelled(db, course=course)
    logger.info(f"Course {course.id} cancelled, {len(signups)} signup(s) affected")

    result = CancelCourseResult(course_id=course.id)
    refunded_ids = []
    refund_amounts = {}
    for signup in signups:
        if not crud.signup.has_captured_payment(signup):
            continue
        try:
            gateway.create_refund(
                signup.stripe_payment_intent_id,
                idempotency_key=f"course-cancel-{signup.id}",
            )
        except RefundFailedError as e:
            logger.error(f"Refund failed for signup {signup.id} on cancelled course {course.id}: {e.message}")
            result.refunds_failed += 1
            result.failed_refund_signup_ids.append(signup.id)
            continue
        refunded_ids.append(signup.id)
        refund_amounts[signup.id] = Decimal(signup.amount_paid or 0)

    result.cancelled_signups = crud.signup.cancel_for_course(
        db, signup_ids=[s.id for s in signups], refunded_ids=refunded_ids
    )
    result.refunds_processed = len(refunded_ids)
    result.total_refunded = sum(refund_amounts.values(), Decimal("0"))

    if notify_participants:
        organization = crud.course.get_organization(db, organization_id=course.organization_id)
        organization_name = organization.name if organization else settings.DEFAULT_ORGANIZATION_NAME
        for signup in signups:
            if not signup.participant_email:
                continue
            template_data = {
                "participantName": signup.participant_name,
                "courseName": course.title,
                "reason": reason,
                "refunded": signup.id in refund_amounts,
                "refundAmount": str(refund_amounts.get(signup.id, Decimal("0"))),
                "organizationName": organization_name,
            }
            try:
                sent = notifier.send(signup.participant_email, COURSE_CANCELLED, template_data)
            except Exception:
                logger.exception(f"Course cancellation email for signup {signup.id} failed")
                continue
            if sent.get("success"):
                result.notifications_sent += 1

    result.message = (
        f"Kurset er avlyst. {result.refunds_processed} refusjoner behandlet, "
        f"{result.notifications_sent} varsler sendt."
    )
    return result
