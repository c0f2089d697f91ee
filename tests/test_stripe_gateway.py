import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from studio_bookings.core.exceptions import RefundFailedError, WebhookSignatureError
from studio_bookings.services.payment.stripe_gateway import StripeGateway

GATEWAY_MODULE = "studio_bookings.services.payment.stripe_gateway"


@pytest.fixture
def gateway():
    return StripeGateway(secret_key="sk_test_123", webhook_secret="whsec_test_123")


class TestVerifyAndParse:

    def test_returns_event_dict(self, gateway):
        event = {"id": "evt_1", "type": "charge.refunded", "data": {"object": {}}}
        payload = json.dumps(event).encode()

        with patch(f"{GATEWAY_MODULE}.stripe.Webhook.construct_event") as construct:
            assert gateway.verify_and_parse(payload, "t=1,v1=sig") == event

        construct.assert_called_once_with(payload, "t=1,v1=sig", "whsec_test_123")

    def test_missing_signature(self, gateway):
        with pytest.raises(WebhookSignatureError):
            gateway.verify_and_parse(b"{}", None)

    def test_bad_signature(self, gateway):
        with patch(
            f"{GATEWAY_MODULE}.stripe.Webhook.construct_event",
            side_effect=stripe.SignatureVerificationError("bad", "sig"),
        ):
            with pytest.raises(WebhookSignatureError) as exc_info:
                gateway.verify_and_parse(b"{}", "sig")

        assert exc_info.value.message == "Invalid signature"


class TestCreateRefund:

    def test_refund_created(self, gateway):
        refund = SimpleNamespace(id="re_1", status="succeeded", amount=25000)

        with patch(f"{GATEWAY_MODULE}.stripe.Refund.create", return_value=refund) as create:
            result = gateway.create_refund("pi_1", idempotency_key="key_1")

        create.assert_called_once_with(
            payment_intent="pi_1", reason="requested_by_customer", idempotency_key="key_1"
        )
        assert result.refund_id == "re_1"
        assert result.amount == 25000

    def test_stripe_error_becomes_refund_failed(self, gateway):
        with patch(
            f"{GATEWAY_MODULE}.stripe.Refund.create",
            side_effect=stripe.InvalidRequestError("already refunded", "payment_intent"),
        ):
            with pytest.raises(RefundFailedError):
                gateway.create_refund("pi_1")
