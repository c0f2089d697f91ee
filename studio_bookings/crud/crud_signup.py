# studio_bookings/crud/crud_signup.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from studio_bookings.crud.base import CRUDBase
from studio_bookings.models.signup import Signup
from studio_bookings.schemas.signup import (
    OfferStatus,
    PaymentStatus,
    SignupCreate,
    SignupStatus,
)


class CRUDSignup(CRUDBase[Signup, SignupCreate, SignupCreate]):
    """
    CRUD operations for signups, including the waitlist offer lifecycle.
    """

    def get_by_payment_intent(
        self, db: Session, *, payment_intent_id: str
    ) -> Optional[Signup]:
        return (
            db.query(self.model)
            .filter(self.model.stripe_payment_intent_id == payment_intent_id)
            .first()
        )

    def get_by_claim_token(self, db: Session, *, token: str) -> Optional[Signup]:
        return (
            db.query(self.model)
            .options(joinedload(self.model.course))
            .filter(self.model.offer_claim_token == token)
            .first()
        )

    def get_for_organization(
        self, db: Session, *, organization_id: str
    ) -> List[Signup]:
        return (
            db.query(self.model)
            .options(joinedload(self.model.course))
            .filter(self.model.organization_id == organization_id)
            .all()
        )

    def count_confirmed(self, db: Session, *, course_id: str) -> int:
        return (
            db.query(func.count(self.model.id))
            .filter(
                and_(
                    self.model.course_id == course_id,
                    self.model.status == SignupStatus.confirmed.value,
                )
            )
            .scalar()
            or 0
        )

    def max_waitlist_position(self, db: Session, *, course_id: str) -> int:
        return (
            db.query(func.max(self.model.waitlist_position))
            .filter(
                and_(
                    self.model.course_id == course_id,
                    self.model.status == SignupStatus.waitlist.value,
                )
            )
            .scalar()
            or 0
        )

    def create_signup(self, db: Session, *, obj_in: SignupCreate) -> Signup:
        """
        Insert a signup. A duplicate payment intent id raises IntegrityError
        after the session has been rolled back.
        """
        db_obj = Signup(**obj_in.model_dump())
        db.add(db_obj)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise
        db.refresh(db_obj)
        return db_obj

    def mark_payment_failed(self, db: Session, *, payment_intent_id: str) -> int:
        """Flag every signup paid with this intent as failed. Returns rows touched."""
        updated = (
            db.query(self.model)
            .filter(self.model.stripe_payment_intent_id == payment_intent_id)
            .update(
                {self.model.payment_status: PaymentStatus.failed.value},
                synchronize_session=False,
            )
        )
        db.commit()
        return updated

    def mark_refunded(
        self, db: Session, *, payment_intent_id: str, cancel: bool
    ) -> int:
        values = {self.model.payment_status: PaymentStatus.refunded.value}
        if cancel:
            values[self.model.status] = SignupStatus.cancelled.value
        updated = (
            db.query(self.model)
            .filter(self.model.stripe_payment_intent_id == payment_intent_id)
            .update(values, synchronize_session=False)
        )
        db.commit()
        return updated

    def record_payment(
        self,
        db: Session,
        *,
        signup: Signup,
        checkout_session_id: Optional[str],
        payment_intent_id: Optional[str],
        amount_paid: Optional[Decimal],
    ) -> Signup:
        """Confirm a seat that has just been paid for."""
        signup.status = SignupStatus.confirmed.value
        signup.payment_status = PaymentStatus.paid.value
        signup.stripe_checkout_session_id = checkout_session_id
        signup.stripe_payment_intent_id = payment_intent_id
        if amount_paid is not None:
            signup.amount_paid = amount_paid
        db.add(signup)
        db.commit()
        db.refresh(signup)
        return signup

    def claim_offer(
        self,
        db: Session,
        *,
        signup: Signup,
        checkout_session_id: Optional[str],
        payment_intent_id: Optional[str],
        amount_paid: Optional[Decimal],
    ) -> Signup:
        """
        Turn a pending waitlist offer into a paid seat. The claim token is
        kept; `offer_status == claimed` is what marks it as used.

        A signup that already paid at checkout keeps its original payment
        ids, so a refund for that intent still finds it.
        """
        if self.has_captured_payment(signup):
            return self.confirm_from_waitlist(db, signup=signup)

        signup.offer_status = OfferStatus.claimed.value
        signup.waitlist_position = None
        return self.record_payment(
            db,
            signup=signup,
            checkout_session_id=checkout_session_id,
            payment_intent_id=payment_intent_id,
            amount_paid=amount_paid,
        )

    @staticmethod
    def has_captured_payment(signup: Signup) -> bool:
        return (
            signup.payment_status == PaymentStatus.paid.value
            and bool(signup.stripe_payment_intent_id)
        )

    def confirm_from_waitlist(self, db: Session, *, signup: Signup) -> Signup:
        """
        Give a waitlisted signup that has already paid its seat directly.
        Payment fields are left alone.
        """
        signup.status = SignupStatus.confirmed.value
        signup.offer_status = OfferStatus.claimed.value
        signup.waitlist_position = None
        db.add(signup)
        db.commit()
        db.refresh(signup)
        return signup

    def set_offer(
        self,
        db: Session,
        *,
        signup: Signup,
        token: str,
        sent_at: datetime,
        expires_at: datetime,
    ) -> Signup:
        signup.offer_status = OfferStatus.pending.value
        signup.offer_claim_token = token
        signup.offer_sent_at = sent_at
        signup.offer_expires_at = expires_at
        db.add(signup)
        db.commit()
        db.refresh(signup)
        return signup

    def expire_offer(
        self, db: Session, *, signup: Signup, new_position: int
    ) -> Signup:
        """Expire a lapsed offer and send the holder to the back of the queue."""
        signup.offer_status = OfferStatus.expired.value
        signup.offer_sent_at = None
        signup.offer_expires_at = None
        signup.offer_claim_token = None
        signup.waitlist_position = new_position
        db.add(signup)
        db.commit()
        db.refresh(signup)
        return signup

    def get_expired_offers(self, db: Session, *, now: datetime) -> List[Signup]:
        return (
            db.query(self.model)
            .filter(
                and_(
                    self.model.offer_status == OfferStatus.pending.value,
                    self.model.offer_expires_at < now,
                )
            )
            .order_by(self.model.offer_expires_at.asc())
            .all()
        )

    def get_next_in_line(self, db: Session, *, course_id: str) -> Optional[Signup]:
        """Lowest-position waitlisted signup that is not holding a live offer."""
        return (
            db.query(self.model)
            .filter(
                and_(
                    self.model.course_id == course_id,
                    self.model.status == SignupStatus.waitlist.value,
                    or_(
                        self.model.offer_status.is_(None),
                        self.model.offer_status == OfferStatus.expired.value,
                    ),
                )
            )
            .order_by(self.model.waitlist_position.asc().nullslast())
            .first()
        )

    def mark_paid(self, db: Session, *, signup: Signup) -> Signup:
        signup.payment_status = PaymentStatus.paid.value
        db.add(signup)
        db.commit()
        db.refresh(signup)
        return signup

    def cancel(
        self,
        db: Session,
        *,
        signup: Signup,
        refunded: bool,
        note: Optional[str] = None,
    ) -> Signup:
        signup.status = SignupStatus.cancelled.value
        if refunded:
            signup.payment_status = PaymentStatus.refunded.value
        if note is not None:
            signup.note = note
        db.add(signup)
        db.commit()
        db.refresh(signup)
        return signup

    def get_active_for_course(self, db: Session, *, course_id: str) -> List[Signup]:
        """Confirmed and waitlisted signups, i.e. everyone a course cancellation affects."""
        return (
            db.query(self.model)
            .filter(
                and_(
                    self.model.course_id == course_id,
                    self.model.status.in_(
                        [SignupStatus.confirmed.value, SignupStatus.waitlist.value]
                    ),
                )
            )
            .all()
        )

    def cancel_for_course(
        self, db: Session, *, signup_ids: List[str], refunded_ids: List[str]
    ) -> int:
        """
        Move the given signups to `course_cancelled`, clearing waitlist
        positions and live offers. Signups in `refunded_ids` also become
        `refunded`. Returns rows touched.
        """
        if not signup_ids:
            return 0

        updated = (
            db.query(self.model)
            .filter(self.model.id.in_(signup_ids))
            .update(
                {
                    self.model.status: SignupStatus.course_cancelled.value,
                    self.model.waitlist_position: None,
                    self.model.offer_claim_token: None,
                    self.model.offer_expires_at: None,
                },
                synchronize_session=False,
            )
        )
        db.query(self.model).filter(
            and_(
                self.model.id.in_(signup_ids),
                self.model.offer_status == OfferStatus.pending.value,
            )
        ).update(
            {self.model.offer_status: OfferStatus.expired.value},
            synchronize_session=False,
        )
        if refunded_ids:
            db.query(self.model).filter(self.model.id.in_(refunded_ids)).update(
                {self.model.payment_status: PaymentStatus.refunded.value},
                synchronize_session=False,
            )
        db.commit()
        return updated


signup = CRUDSignup(Signup)
