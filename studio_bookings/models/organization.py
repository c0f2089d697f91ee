import uuid
from sqlalchemy import Column, String
from studio_bookings.db.base_class import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=lambda: f"org_{uuid.uuid4().hex[:12]}")
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
