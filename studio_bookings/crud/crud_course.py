# studio_bookings/crud/crud_course.py
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from studio_bookings.crud.base import CRUDBase
from studio_bookings.models.course import Course, CourseSession
from studio_bookings.models.organization import Organization
from studio_bookings.schemas.course import CourseStatus


class CRUDCourse(CRUDBase[Course, BaseModel, BaseModel]):

    def get_session(self, db: Session, *, session_id: str) -> Optional[CourseSession]:
        """Dated occurrence of a course, used for drop-in bookings."""
        return db.query(CourseSession).filter(CourseSession.id == session_id).first()

    def mark_cancelled(self, db: Session, *, course: Course) -> Course:
        course.status = CourseStatus.cancelled.value
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    def get_organization(
        self, db: Session, *, organization_id: str
    ) -> Optional[Organization]:
        return (
            db.query(Organization).filter(Organization.id == organization_id).first()
        )


course = CRUDCourse(Course)
