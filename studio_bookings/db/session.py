from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from studio_bookings.core.config import settings

# The engine handles connection pooling for the configured database URL.
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

# One session per request or background job run.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        # Always close, even when the endpoint raised.
        db.close()
