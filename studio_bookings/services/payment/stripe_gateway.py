# studio_bookings/services/payment/stripe_gateway.py
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import stripe

from studio_bookings.core.config import settings
from studio_bookings.core.exceptions import RefundFailedError, WebhookSignatureError

logger = logging.getLogger(__name__)


@dataclass
class RefundResult:
    refund_id: str
    status: str
    amount: Optional[int]


class StripeGateway:
    """
    The two Stripe calls this service makes: webhook signature
    verification and refund creation.
    """

    def __init__(self, secret_key: str, webhook_secret: str):
        self._webhook_secret = webhook_secret
        stripe.api_key = secret_key

    def verify_and_parse(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify the `stripe-signature` header and return the event as a plain dict.

        Raises:
            WebhookSignatureError: missing header, bad signature or unreadable payload.
        """
        if not signature:
            raise WebhookSignatureError("Missing stripe-signature header")

        try:
            stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except ValueError:
            logger.error("Invalid webhook payload")
            raise WebhookSignatureError("Invalid payload")
        except stripe.SignatureVerificationError:
            logger.error("Invalid webhook signature")
            raise WebhookSignatureError("Invalid signature")

        try:
            return json.loads(payload)
        except ValueError:
            logger.error("Webhook payload is not valid JSON")
            raise WebhookSignatureError("Invalid payload")

    def create_refund(self, payment_intent_id: str, idempotency_key: Optional[str] = None) -> RefundResult:
        """Refund a payment intent in full."""
        try:
            refund = stripe.Refund.create(
                payment_intent=payment_intent_id,
                reason="requested_by_customer",
                idempotency_key=idempotency_key,
            )
        except stripe.InvalidRequestError as e:
            logger.error(f"Invalid refund request for {payment_intent_id}: {e}")
            raise RefundFailedError(f"Refund rejected: {e}")
        except stripe.StripeError as e:
            logger.error(f"Error creating refund for {payment_intent_id}: {e}")
            raise RefundFailedError("Could not process refund")

        logger.info(f"Created refund {refund.id} for payment intent {payment_intent_id}")
        return RefundResult(refund_id=refund.id, status=refund.status, amount=refund.amount)


def get_stripe_gateway() -> StripeGateway:
    return StripeGateway(
        secret_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
    )
