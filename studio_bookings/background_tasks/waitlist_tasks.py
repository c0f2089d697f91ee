# studio_bookings/background_tasks/waitlist_tasks.py
"""
Background tasks for waitlist management.

- check_expired_offers(): every minute
"""

import logging

from studio_bookings.core.email import notifier
from studio_bookings.db.session import SessionLocal
from studio_bookings.services.waitlist_service import WaitlistService

logger = logging.getLogger(__name__)


def check_expired_offers():
    """
    Background task: expire lapsed waitlist offers and offer the freed
    seats to the next people in line.

    Process:
    1. Find pending offers where offer_expires_at < NOW()
    2. Mark them expired and move each holder to the back of the waitlist
    3. Email the holder that the offer lapsed
    4. Offer each affected course's seat to the next signup in line
    """
    db = SessionLocal()

    try:
        result = WaitlistService(notifier).process_expired_offers(db)
        if result.expired:
            logger.info(
                f"Expired {result.expired} waitlist offers, "
                f"{sum(1 for p in result.promotions if p.promoted)} new offers sent"
            )
        return True

    except Exception as e:
        logger.error(f"Error checking expired offers: {e}")
        db.rollback()
        return False

    finally:
        db.close()
