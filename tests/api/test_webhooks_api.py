"""
Tests for POST /api/v1/webhooks/stripe.

Stripe signature verification is patched at `stripe.Webhook.construct_event`;
everything after it runs against the in-memory database.
"""
import json
from unittest.mock import MagicMock, patch

import stripe

from studio_bookings import crud
from studio_bookings.models.signup import Signup

WEBHOOK_URL = "/api/v1/webhooks/stripe"
SIGNATURE = {"stripe-signature": "t=1,v1=test"}


def checkout_event(course, event_id="evt_1", payment_intent="pi_1", **metadata):
    values = {
        "course_id": course.id,
        "organization_id": course.organization_id,
        "customer_name": "Kari Nordmann",
        "customer_email": "kari@example.no",
    }
    values.update(metadata)
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_1",
                "payment_intent": payment_intent,
                "amount_total": 25000,
                "metadata": values,
            }
        },
    }


def post_event(client, event, headers=SIGNATURE):
    return client.post(WEBHOOK_URL, content=json.dumps(event), headers=headers)


class TestSignatureVerification:

    def test_missing_signature_header(self, test_client, course):
        response = post_event(test_client, checkout_event(course), headers={})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing stripe-signature header"

    def test_invalid_signature(self, test_client, db_session, course):
        with patch(
            "stripe.Webhook.construct_event",
            side_effect=stripe.SignatureVerificationError("bad signature", "t=1,v1=test"),
        ):
            response = post_event(test_client, checkout_event(course))

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid signature"
        assert db_session.query(Signup).count() == 0

    def test_invalid_payload(self, test_client, course):
        with patch("stripe.Webhook.construct_event", side_effect=ValueError("bad json")):
            response = post_event(test_client, checkout_event(course))

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid payload"


class TestCheckoutCompleted:

    @patch("stripe.Webhook.construct_event", return_value=MagicMock())
    def test_creates_signup(self, _construct, test_client, db_session, course, notifier):
        response = post_event(test_client, checkout_event(course))

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        signup = crud.signup.get_by_payment_intent(db_session, payment_intent_id="pi_1")
        assert signup.participant_name == "Kari Nordmann"
        notifier.send.assert_called_once()

    @patch("stripe.Webhook.construct_event", return_value=MagicMock())
    def test_duplicate_delivery(self, _construct, test_client, db_session, course):
        first = post_event(test_client, checkout_event(course))
        second = post_event(test_client, checkout_event(course))

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json() == {"status": "already_processed"}
        assert db_session.query(Signup).count() == 1

    @patch("stripe.Webhook.construct_event", return_value=MagicMock())
    def test_missing_metadata_is_400(self, _construct, test_client, course):
        event = checkout_event(course)
        del event["data"]["object"]["metadata"]["organization_id"]

        response = post_event(test_client, event)

        assert response.status_code == 400
        assert response.json()["detail"]["missing_fields"] == ["organization_id"]

    @patch("stripe.Webhook.construct_event", return_value=MagicMock())
    def test_unknown_course_is_400(self, _construct, test_client, course):
        response = post_event(test_client, checkout_event(course, course_id="crs_missing"))

        assert response.status_code == 400

    @patch("stripe.Webhook.construct_event", return_value=MagicMock())
    def test_expired_claim_is_distinguishable(self, _construct, test_client, make_signup, course):
        signup = make_signup(course, status="waitlist", offer_status="pending", offer_claim_token="tok")
        event = checkout_event(course)
        event["data"]["object"]["metadata"] = {
            "is_waitlist_claim": "true",
            "signup_id": signup.id,
            "claim_token": "tok",
        }

        response = post_event(test_client, event)

        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "expired"

    @patch("stripe.Webhook.construct_event", return_value=MagicMock())
    def test_invalid_claim_token(self, _construct, test_client, make_signup, course):
        signup = make_signup(course, status="waitlist", offer_status="pending", offer_claim_token="tok")
        event = checkout_event(course)
        event["data"]["object"]["metadata"] = {
            "is_waitlist_claim": "true",
            "signup_id": signup.id,
            "claim_token": "forged",
        }

        response = post_event(test_client, event)

        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "invalid"


class TestRefunds:

    @patch("stripe.Webhook.construct_event", return_value=MagicMock())
    def test_refunded_signup_moves_to_cancelled_bucket(self, _construct, test_client, make_signup, course):
        make_signup(course, stripe_payment_intent_id="pi_r", participant_name="Refundert")
        event = {
            "id": "evt_r",
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_r", "payment_intent": "pi_r", "amount": 25000, "amount_refunded": 25000}},
        }

        assert post_event(test_client, event).status_code == 200

        grouped = test_client.get(
            f"/api/v1/organizations/{course.organization_id}/signups/grouped",
            params={"mode": "ended"},
        ).json()
        [group] = grouped["groups"]
        assert [s["participant_name"] for s in group["signups"]["cancelled"]] == ["Refundert"]
        assert group["signups"]["cancelled"][0]["payment_status"] == "refunded"
