# studio_bookings/models/processed_webhook_event.py
from sqlalchemy import JSON, Column, DateTime, Integer, String, func
from studio_bookings.db.base_class import Base


class ProcessedWebhookEvent(Base):
    """
    Ledger of Stripe events that have been claimed for processing.

    The unique constraint on `event_id` is what breaks the race between two
    concurrent deliveries of the same event: only one INSERT succeeds.
    """

    __tablename__ = "processed_webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False)

    # Values: 'processing', 'processed'
    status = Column(String(50), nullable=False, server_default="processing")
    result = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    @property
    def is_processed(self) -> bool:
        return self.status == "processed"
