# studio_bookings/services/waitlist_service.py
"""
Waitlist offers.

When a seat frees up the lowest-position waitlisted signup gets a time
limited offer: a single-use claim token emailed as a link. Paying through
that link is reconciled by the webhook (see checkout_reconciler). A signup
that was charged when it joined the queue at checkout is confirmed straight
away instead. Offers nobody claims are swept by `process_expired_offers`,
which sends the holder to the back of the queue and offers the seat to the
next person.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from studio_bookings import crud
from studio_bookings.core.config import settings
from studio_bookings.core.email import OFFER_EXPIRED, SIGNUP_CONFIRMATION, SPOT_AVAILABLE, EmailNotifier
from studio_bookings.core.exceptions import CourseNotFoundError
from studio_bookings.models.course import Course
from studio_bookings.models.signup import Signup
from studio_bookings.schemas.signup import OfferStatus, SignupCreate, SignupStatus, WaitlistJoin
from studio_bookings.schemas.waitlist import (
    ClaimCourseSummary,
    ClaimOrganizationSummary,
    ClaimSignupSummary,
    ClaimTokenStatus,
    ClaimValidation,
    ExpiredOffersResult,
    PromotionResult,
)
from studio_bookings.services.checkout_reconciler import confirmation_template_data
from studio_bookings.utils.dates import ensure_aware, format_expiry_nb, utcnow

logger = logging.getLogger(__name__)


def generate_claim_token() -> str:
    return uuid.uuid4().hex


def claim_url(token: str) -> str:
    return f"{settings.SITE_URL.rstrip('/')}/claim-spot/{token}"


class WaitlistService:

    def __init__(self, notifier: EmailNotifier, clock: Callable[[], datetime] = utcnow):
        self.notifier = notifier
        self.clock = clock

    def join_waitlist(self, db: Session, *, course_id: str, participant: WaitlistJoin) -> Signup:
        """Put a participant at the tail of a course's waitlist."""
        course = crud.course.get(db, id=course_id)
        if not course:
            raise CourseNotFoundError(f"Course {course_id} not found")

        position = crud.signup.max_waitlist_position(db, course_id=course_id) + 1
        signup = crud.signup.create_signup(
            db,
            obj_in=SignupCreate(
                course_id=course.id,
                organization_id=course.organization_id,
                participant_name=participant.participant_name,
                participant_email=participant.participant_email,
                participant_phone=participant.participant_phone,
                status=SignupStatus.waitlist,
                waitlist_position=position,
            ),
        )
        logger.info(f"Signup {signup.id} joined waitlist for course {course_id} at position {position}")
        return signup

    def promote_next_in_line(self, db: Session, *, course_id: str) -> PromotionResult:
        """
        Offer a free seat to the next waitlisted participant, if there is one.

        Signups already holding a pending offer are skipped, so calling this
        repeatedly never hands the same seat out twice to the same person.
        """
        course = crud.course.get(db, id=course_id)
        if not course:
            raise CourseNotFoundError(f"Course {course_id} not found")

        confirmed = crud.signup.count_confirmed(db, course_id=course_id)
        spots_available = course.max_participants - confirmed
        if spots_available <= 0:
            return PromotionResult(
                course_id=course_id, promoted=False, spots_available=0, reason="course_full"
            )

        candidate = crud.signup.get_next_in_line(db, course_id=course_id)
        if not candidate:
            return PromotionResult(
                course_id=course_id,
                promoted=False,
                spots_available=spots_available,
                reason="waitlist_empty",
            )

        if crud.signup.has_captured_payment(candidate):
            return self._confirm_paid_candidate(db, course, candidate, spots_available)

        now = self.clock()
        expires_at = now + timedelta(hours=settings.OFFER_TTL_HOURS)
        token = generate_claim_token()
        candidate = crud.signup.set_offer(
            db, signup=candidate, token=token, sent_at=now, expires_at=expires_at
        )
        logger.info(
            f"Offered seat on course {course_id} to signup {candidate.id}, expires {expires_at.isoformat()}"
        )

        organization = crud.course.get_organization(db, organization_id=course.organization_id)
        self._notify(
            candidate,
            SPOT_AVAILABLE,
            {
                "participantName": candidate.participant_name,
                "courseName": course.title,
                "claimUrl": claim_url(token),
                "expiresAt": format_expiry_nb(expires_at),
                "organizationName": organization.name if organization else settings.DEFAULT_ORGANIZATION_NAME,
            },
        )

        return PromotionResult(
            course_id=course_id,
            promoted=True,
            spots_available=spots_available,
            signup_id=candidate.id,
            offer_expires_at=expires_at,
        )

    def _confirm_paid_candidate(
        self, db: Session, course: Course, candidate: Signup, spots_available: int
    ) -> PromotionResult:
        # Charged at checkout; no second payment is taken
        candidate = crud.signup.confirm_from_waitlist(db, signup=candidate)
        logger.info(f"Confirmed paid waitlist signup {candidate.id} on course {course.id}")
        self._notify(candidate, SIGNUP_CONFIRMATION, confirmation_template_data(db, candidate, course))
        return PromotionResult(
            course_id=course.id,
            promoted=True,
            confirmed=True,
            spots_available=spots_available,
            signup_id=candidate.id,
        )

    def validate_claim_token(self, db: Session, *, token: str) -> ClaimValidation:
        signup = crud.signup.get_by_claim_token(db, token=token)
        if not signup:
            return ClaimValidation(status=ClaimTokenStatus.invalid)

        if signup.offer_status == OfferStatus.claimed.value:
            return ClaimValidation(status=ClaimTokenStatus.claimed)

        expires_at = ensure_aware(signup.offer_expires_at)
        if signup.offer_status != OfferStatus.pending.value or expires_at is None or expires_at <= self.clock():
            return ClaimValidation(status=ClaimTokenStatus.expired)

        course = signup.course
        organization = crud.course.get_organization(db, organization_id=signup.organization_id)
        return ClaimValidation(
            status=ClaimTokenStatus.valid,
            signup=ClaimSignupSummary(
                id=signup.id,
                participant_name=signup.participant_name,
                participant_email=signup.participant_email,
                offer_expires_at=expires_at,
            ),
            course=ClaimCourseSummary(
                id=course.id,
                title=course.title,
                price=course.price,
                location=course.location,
                time_schedule=course.time_schedule,
                start_date=course.start_date,
            ),
            organization=(
                ClaimOrganizationSummary(id=organization.id, name=organization.name, slug=organization.slug)
                if organization
                else None
            ),
        )

    def process_expired_offers(self, db: Session) -> ExpiredOffersResult:
        """
        Expire every pending offer past its deadline, then try to offer each
        affected course's seat to the next person in line.
        """
        now = self.clock()
        expired = crud.signup.get_expired_offers(db, now=now)
        if not expired:
            return ExpiredOffersResult(expired=0)

        affected_courses = []
        signup_ids = []
        for signup in expired:
            new_position = crud.signup.max_waitlist_position(db, course_id=signup.course_id) + 1
            signup = crud.signup.expire_offer(db, signup=signup, new_position=new_position)
            signup_ids.append(signup.id)
            logger.info(f"Offer for signup {signup.id} expired, moved to waitlist position {new_position}")

            course = signup.course
            organization = crud.course.get_organization(db, organization_id=signup.organization_id)
            self._notify(
                signup,
                OFFER_EXPIRED,
                {
                    "participantName": signup.participant_name,
                    "courseName": course.title if course else "Kurs",
                    "organizationName": organization.name if organization else settings.DEFAULT_ORGANIZATION_NAME,
                },
            )

            if signup.course_id not in affected_courses:
                affected_courses.append(signup.course_id)

        promotions = [
            self.promote_next_in_line(db, course_id=course_id) for course_id in affected_courses
        ]

        logger.info(f"Processed {len(signup_ids)} expired waitlist offers")
        return ExpiredOffersResult(expired=len(signup_ids), signup_ids=signup_ids, promotions=promotions)

    def _notify(self, signup: Signup, template: str, template_data: dict) -> None:
        try:
            self.notifier.send(signup.participant_email, template, template_data)
        except Exception:
            logger.exception(f"'{template}' email for signup {signup.id} failed")


def promote_if_possible(service: WaitlistService, db: Session, course_id: Optional[str]) -> Optional[PromotionResult]:
    """Best-effort promotion after a seat is freed; failures are logged."""
    if not course_id:
        return None
    try:
        return service.promote_next_in_line(db, course_id=course_id)
    except Exception:
        db.rollback()
        logger.exception(f"Waitlist promotion for course {course_id} failed")
        return None
