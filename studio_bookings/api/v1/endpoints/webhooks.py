# studio_bookings/api/v1/endpoints/webhooks.py
"""
Stripe webhook endpoint for course checkouts, waitlist claims, payment
failures and refunds.
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studio_bookings.api import deps
from studio_bookings.core.exceptions import (
    ClaimRejectedError,
    CourseNotFoundError,
    InvalidEventError,
    SignupNotFoundError,
    WebhookSignatureError,
)
from studio_bookings.db.session import get_db
from studio_bookings.services.checkout_reconciler import CheckoutReconciler
from studio_bookings.services.payment.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(deps.get_gateway),
    reconciler: CheckoutReconciler = Depends(deps.get_reconciler),
    stripe_signature: str = Header(None, alias="stripe-signature"),
):
    """
    Handle Stripe webhook events.

    Events handled:
    - checkout.session.completed: new signup, waitlist claim or payment link
    - checkout.session.expired: logged only
    - payment_intent.payment_failed: flag the signup's payment as failed
    - charge.refunded: mark refunded, cancel on full refund

    Permanently invalid events get a 400 so Stripe stops retrying them.
    """
    payload = await request.body()

    try:
        event = gateway.verify_and_parse(payload, stripe_signature)
    except WebhookSignatureError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    logger.info(f"Received Stripe webhook: {event.get('type')} ({event.get('id')})")

    try:
        return reconciler.process(db, event)
    except InvalidEventError as e:
        logger.warning(f"Rejected webhook event {event.get('id')}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": e.message, "missing_fields": e.missing_fields},
        )
    except ClaimRejectedError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": e.message, "reason": e.reason},
        )
    except (CourseNotFoundError, SignupNotFoundError) as e:
        logger.warning(f"Webhook event {event.get('id')} references missing data: {e.message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except SQLAlchemyError as e:
        logger.error(f"Database error processing webhook {event.get('id')}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook",
        )
