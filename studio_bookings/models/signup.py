import uuid
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship
from studio_bookings.db.base_class import Base


class Signup(Base):
    """
    A participant's booking for a course, or for one dated session of it
    when booked as a drop-in.

    Lifecycle status and payment status move independently: the webhook
    reconciler drives payment transitions, teachers drive cancellations and
    manual payments, and the waitlist flow drives offers.
    """

    __tablename__ = "signups"

    id = Column(String, primary_key=True, default=lambda: f"sgn_{uuid.uuid4().hex[:12]}")
    course_id = Column(String, ForeignKey("courses.id"), nullable=False, index=True)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)

    # Denormalized copy taken at booking time
    participant_name = Column(String, nullable=False)
    participant_email = Column(String, nullable=False, index=True)
    participant_phone = Column(String, nullable=True)

    status = Column(String(20), nullable=False, server_default="confirmed")  # confirmed, waitlist, cancelled, course_cancelled
    payment_status = Column(String(20), nullable=False, server_default="pending")  # pending, paid, failed, refunded

    # Waitlist / offer details
    waitlist_position = Column(Integer, nullable=True)
    offer_status = Column(String(20), nullable=True)  # pending, claimed, expired
    offer_sent_at = Column(DateTime(timezone=True), nullable=True)
    offer_expires_at = Column(DateTime(timezone=True), nullable=True)
    offer_claim_token = Column(String(64), nullable=True, unique=True, index=True)

    # Stripe linkage. The payment intent id doubles as the webhook idempotency key.
    stripe_checkout_session_id = Column(String, nullable=True)
    stripe_payment_intent_id = Column(String, nullable=True, unique=True, index=True)
    amount_paid = Column(Numeric(10, 2), nullable=True)

    # Drop-in bookings carry their own date/time instead of the course schedule
    is_drop_in = Column(Boolean, nullable=False, default=False)
    session_id = Column(String, ForeignKey("course_sessions.id"), nullable=True)
    class_date = Column(Date, nullable=True)
    class_time = Column(String(5), nullable=True)

    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    registered_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    course = relationship("Course", back_populates="signups")
