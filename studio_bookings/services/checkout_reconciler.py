# studio_bookings/services/checkout_reconciler.py
"""
Stripe webhook reconciliation.

Each verified event moves signups through exactly one state transition:

- checkout.session.completed   create a signup (confirmed or waitlisted),
                               claim a waitlist offer, or settle a payment link
- checkout.session.expired     logged only
- payment_intent.payment_failed  payment_status -> failed
- charge.refunded              payment_status -> refunded (full refunds also cancel)

Stripe delivers at least once. Replays are absorbed at two levels: the
event id is claimed in the processed_webhook_events ledger before any work,
and the payment intent id / offer_status transition make each individual
mutation a no-op the second time around.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studio_bookings import crud
from studio_bookings.core.config import settings
from studio_bookings.core.email import SIGNUP_CONFIRMATION, EmailNotifier
from studio_bookings.core.exceptions import ClaimRejectedError, CourseNotFoundError, SignupNotFoundError
from studio_bookings.models.course import Course
from studio_bookings.models.signup import Signup
from studio_bookings.schemas.checkout_event import (
    ChargeRefunded,
    CheckoutEvent,
    CheckoutSessionExpired,
    OrdinaryCheckoutCompleted,
    PaymentIntentFailed,
    PaymentLinkCompleted,
    UnhandledEvent,
    WaitlistClaimCompleted,
    decode_event,
)
from studio_bookings.schemas.signup import OfferStatus, PaymentStatus, SignupCreate, SignupStatus
from studio_bookings.utils.dates import ensure_aware, extract_time, format_date_nb, utcnow

logger = logging.getLogger(__name__)


def confirmation_template_data(db: Session, signup: Signup, course: Course) -> Dict[str, Any]:
    organization = crud.course.get_organization(db, organization_id=signup.organization_id)
    course_date = signup.class_date or course.start_date
    return {
        "participantName": signup.participant_name,
        "courseName": course.title or "Kurs",
        "courseDate": format_date_nb(course_date) if course_date else "",
        "courseTime": signup.class_time or extract_time(course.time_schedule) or "",
        "location": course.location or "",
        "organizationName": organization.name if organization else settings.DEFAULT_ORGANIZATION_NAME,
    }


def compute_seat(confirmed_count: int, max_participants: int, waitlist_tail: int) -> tuple[str, Optional[int]]:
    """
    Decide where a newly paid signup lands.

    Returns (status, waitlist_position). A full course puts the signup on the
    waitlist at `confirmed - max + 1`, moved back behind anyone already queued.
    """
    spots_available = max_participants - confirmed_count
    if spots_available > 0:
        return SignupStatus.confirmed.value, None

    position = max(confirmed_count - max_participants + 1, waitlist_tail + 1)
    return SignupStatus.waitlist.value, position


class CheckoutReconciler:
    """
    Applies decoded Stripe events to the signups table.

    The notifier and clock are injected so tests can observe emails and pin
    the current time.
    """

    def __init__(self, notifier: EmailNotifier, clock: Callable[[], datetime] = utcnow):
        self.notifier = notifier
        self.clock = clock
        self._handlers = {
            OrdinaryCheckoutCompleted: self._handle_ordinary_checkout,
            WaitlistClaimCompleted: self._handle_waitlist_claim,
            PaymentLinkCompleted: self._handle_payment_link,
            CheckoutSessionExpired: self._handle_checkout_expired,
            PaymentIntentFailed: self._handle_payment_failed,
            ChargeRefunded: self._handle_charge_refunded,
            UnhandledEvent: self._handle_unhandled,
        }

    def process(self, db: Session, raw_event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Decode, claim and apply one raw Stripe event.

        Raises:
            InvalidEventError: required fields missing; nothing was written.
            ClaimRejectedError: waitlist claim with a bad token or a lapsed offer.
            CourseNotFoundError: the checkout names a course that does not exist.
        """
        event = decode_event(raw_event)

        if not crud.webhook_event.claim(db, event_id=event.event_id, event_type=event.event_type):
            logger.info(f"Event {event.event_id} already processed, skipping")
            return {"status": "already_processed"}

        try:
            result = self.reconcile(db, event)
        except Exception:
            db.rollback()
            # Let Stripe's retry re-run this event
            crud.webhook_event.release(db, event_id=event.event_id)
            raise

        crud.webhook_event.record_result(db, event_id=event.event_id, result=result)
        return result

    def reconcile(self, db: Session, event: CheckoutEvent) -> Dict[str, Any]:
        """Apply a single decoded event. Safe to call again with the same event."""
        handler = self._handlers[type(event)]
        return handler(db, event)

    def _handle_ordinary_checkout(self, db: Session, event: OrdinaryCheckoutCompleted) -> Dict[str, Any]:
        if event.payment_intent_id:
            existing = crud.signup.get_by_payment_intent(db, payment_intent_id=event.payment_intent_id)
            if existing:
                logger.info(
                    f"Signup {existing.id} already exists for payment intent {event.payment_intent_id}"
                )
                return {"status": "already_exists", "signup_id": existing.id}

        course = crud.course.get(db, id=event.course_id)
        if not course:
            raise CourseNotFoundError(f"Course {event.course_id} not found")

        class_date = None
        class_time = None
        if event.is_drop_in and event.session_id:
            course_session = crud.course.get_session(db, session_id=event.session_id)
            if course_session:
                class_date = course_session.session_date
                if course_session.start_time:
                    class_time = course_session.start_time.strftime("%H:%M")
            else:
                logger.warning(f"Drop-in session {event.session_id} not found for course {course.id}")

        confirmed_count = crud.signup.count_confirmed(db, course_id=course.id)
        waitlist_tail = crud.signup.max_waitlist_position(db, course_id=course.id)
        status, position = compute_seat(confirmed_count, course.max_participants, waitlist_tail)

        signup_in = SignupCreate(
            course_id=course.id,
            organization_id=event.organization_id,
            participant_name=event.customer_name,
            participant_email=event.customer_email,
            participant_phone=event.customer_phone,
            status=status,
            payment_status=PaymentStatus.paid,
            waitlist_position=position,
            stripe_checkout_session_id=event.checkout_session_id,
            stripe_payment_intent_id=event.payment_intent_id,
            amount_paid=event.amount_total,
            is_drop_in=event.is_drop_in,
            session_id=event.session_id if event.is_drop_in else None,
            class_date=class_date,
            class_time=class_time,
        )

        try:
            signup = crud.signup.create_signup(db, obj_in=signup_in)
        except IntegrityError:
            # A concurrent delivery inserted this payment intent first
            logger.info(f"Duplicate insert for payment intent {event.payment_intent_id}, treating as processed")
            return {"status": "already_exists", "payment_intent_id": event.payment_intent_id}

        logger.info(
            f"Created signup {signup.id} for course {course.id} with status {signup.status}"
            + (f" at waitlist position {position}" if position else "")
        )

        self._send_confirmation(db, signup, course)
        return {"status": signup.status, "signup_id": signup.id, "waitlist_position": position}

    def _handle_waitlist_claim(self, db: Session, event: WaitlistClaimCompleted) -> Dict[str, Any]:
        signup = crud.signup.get(db, id=event.signup_id)
        if not signup:
            logger.warning(f"Waitlist claim for unknown signup {event.signup_id}")
            raise ClaimRejectedError(ClaimRejectedError.INVALID, "Signup not found")

        if signup.offer_status == OfferStatus.claimed.value:
            logger.info(f"Offer for signup {signup.id} already claimed")
            return {"status": "already_claimed", "signup_id": signup.id}

        if signup.offer_claim_token != event.claim_token:
            logger.warning(f"Claim token mismatch for signup {signup.id}")
            raise ClaimRejectedError(ClaimRejectedError.INVALID, "Invalid claim token")

        expires_at = ensure_aware(signup.offer_expires_at)
        if expires_at is None or expires_at <= self.clock():
            logger.warning(f"Offer for signup {signup.id} expired at {expires_at}")
            raise ClaimRejectedError(ClaimRejectedError.EXPIRED, "Offer has expired")

        if (
            crud.signup.has_captured_payment(signup)
            and event.payment_intent_id
            and event.payment_intent_id != signup.stripe_payment_intent_id
        ):
            # Paid once at checkout; the first intent stays on the signup
            logger.warning(
                f"Signup {signup.id} already paid with {signup.stripe_payment_intent_id}, "
                f"claim payment {event.payment_intent_id} needs a manual refund"
            )

        signup = crud.signup.claim_offer(
            db,
            signup=signup,
            checkout_session_id=event.checkout_session_id,
            payment_intent_id=event.payment_intent_id,
            amount_paid=event.amount_total,
        )
        logger.info(f"Waitlist offer claimed for signup {signup.id}")

        self._send_confirmation(db, signup, signup.course)
        return {"status": "claimed", "signup_id": signup.id}

    def _handle_payment_link(self, db: Session, event: PaymentLinkCompleted) -> Dict[str, Any]:
        signup = crud.signup.get(db, id=event.signup_id)
        if not signup:
            raise SignupNotFoundError(f"Signup {event.signup_id} for payment link not found")

        if (
            signup.payment_status == PaymentStatus.paid.value
            and signup.stripe_payment_intent_id == event.payment_intent_id
        ):
            return {"status": "already_paid", "signup_id": signup.id}

        signup = crud.signup.record_payment(
            db,
            signup=signup,
            checkout_session_id=event.checkout_session_id,
            payment_intent_id=event.payment_intent_id,
            amount_paid=event.amount_total,
        )
        logger.info(f"Payment link settled signup {signup.id}")

        self._send_confirmation(db, signup, signup.course)
        return {"status": "confirmed", "signup_id": signup.id}

    def _handle_checkout_expired(self, db: Session, event: CheckoutSessionExpired) -> Dict[str, Any]:
        logger.info(f"Checkout session expired: {event.checkout_session_id}")
        return {"status": "session_expired", "checkout_session_id": event.checkout_session_id}

    def _handle_payment_failed(self, db: Session, event: PaymentIntentFailed) -> Dict[str, Any]:
        updated = crud.signup.mark_payment_failed(db, payment_intent_id=event.payment_intent_id)
        logger.info(f"Payment failed for intent {event.payment_intent_id}, {updated} signup(s) flagged")
        return {"status": "payment_failed", "updated": updated}

    def _handle_charge_refunded(self, db: Session, event: ChargeRefunded) -> Dict[str, Any]:
        full = event.is_full_refund
        updated = crud.signup.mark_refunded(db, payment_intent_id=event.payment_intent_id, cancel=full)
        logger.info(
            f"Charge {event.charge_id} refunded ({'full' if full else 'partial'}), {updated} signup(s) updated"
        )
        return {"status": "refunded", "full_refund": full, "updated": updated}

    def _handle_unhandled(self, db: Session, event: UnhandledEvent) -> Dict[str, Any]:
        logger.info(f"Unhandled event type: {event.event_type}")
        return {"status": "ignored", "event_type": event.event_type}

    def _send_confirmation(self, db: Session, signup: Signup, course: Optional[Course]) -> None:
        if course is None:
            return

        template_data = confirmation_template_data(db, signup, course)
        try:
            self.notifier.send(signup.participant_email, SIGNUP_CONFIRMATION, template_data)
        except Exception:
            logger.exception(f"Confirmation email for signup {signup.id} failed")
