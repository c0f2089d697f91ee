# studio_bookings/crud/crud_webhook_event.py
from typing import Any, Dict, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studio_bookings.crud.base import CRUDBase
from studio_bookings.models.processed_webhook_event import ProcessedWebhookEvent


class CRUDWebhookEvent(CRUDBase[ProcessedWebhookEvent, BaseModel, BaseModel]):
    """Claim ledger that makes Stripe event processing idempotent."""

    def get_by_event_id(
        self, db: Session, *, event_id: str
    ) -> Optional[ProcessedWebhookEvent]:
        return db.query(self.model).filter(self.model.event_id == event_id).first()

    def claim(self, db: Session, *, event_id: str, event_type: str) -> bool:
        """
        Claim an event before doing any work on it.

        Returns False when another delivery already holds the claim. The
        unique constraint on event_id settles concurrent deliveries.
        """
        db.add(
            ProcessedWebhookEvent(
                event_id=event_id,
                event_type=event_type,
                status="processing",
                result={"status": "processing"},
            )
        )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return False
        return True

    def record_result(
        self, db: Session, *, event_id: str, result: Dict[str, Any]
    ) -> Optional[ProcessedWebhookEvent]:
        event = self.get_by_event_id(db, event_id=event_id)
        if not event:
            return None

        event.status = "processed"
        event.result = result
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    def release(self, db: Session, *, event_id: str) -> None:
        """Drop a claim so a provider retry can process the event again."""
        db.query(self.model).filter(self.model.event_id == event_id).delete(
            synchronize_session=False
        )
        db.commit()


webhook_event = CRUDWebhookEvent(ProcessedWebhookEvent)
