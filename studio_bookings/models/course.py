import uuid
from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String, Time
from sqlalchemy.orm import relationship
from studio_bookings.db.base_class import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(String, primary_key=True, default=lambda: f"crs_{uuid.uuid4().hex[:12]}")
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    title = Column(String, nullable=False)

    # Capacity. Confirmed signups beyond this go to the waitlist.
    max_participants = Column(Integer, nullable=False)

    location = Column(String, nullable=True)
    # Free text such as "Tirsdager, 18:00"
    time_schedule = Column(String, nullable=True)
    start_date = Column(Date, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=False, default="active", server_default="active")  # active, cancelled

    organization = relationship("Organization")
    sessions = relationship("CourseSession", back_populates="course")
    signups = relationship("Signup", back_populates="course")


class CourseSession(Base):
    """A single dated occurrence of a course, bookable as a drop-in."""

    __tablename__ = "course_sessions"

    id = Column(String, primary_key=True, default=lambda: f"cses_{uuid.uuid4().hex[:12]}")
    course_id = Column(String, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    session_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)

    course = relationship("Course", back_populates="sessions")
