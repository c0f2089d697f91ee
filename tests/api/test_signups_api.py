from datetime import date, timedelta
from decimal import Decimal

from studio_bookings.api import deps
from studio_bookings.core.exceptions import RefundFailedError
from studio_bookings.main import app
from studio_bookings.schemas.token import TokenPayload
from studio_bookings.utils.dates import utcnow

ORG_ID = "org_test"
BASE_URL = f"/api/v1/organizations/{ORG_ID}/signups"


def upcoming_course(make_course):
    return make_course(start_date=utcnow().date() + timedelta(days=7))


class TestGroupedSignups:

    def test_groups_upcoming_signups(self, test_client, make_course, make_signup):
        course = upcoming_course(make_course)
        make_signup(course, participant_name="Bodil")
        make_signup(course, participant_name="Anne")
        make_signup(course, participant_name="Unpaid", payment_status="pending")
        make_signup(course, participant_name="Venter", status="waitlist", waitlist_position=1, payment_status="pending")

        response = test_client.get(f"{BASE_URL}/grouped")

        assert response.status_code == 200
        body = response.json()
        [group] = body["groups"]
        assert [s["participant_name"] for s in group["signups"]["confirmed"]] == ["Anne", "Bodil"]
        assert [s["exception_type"] for s in group["signups"]["exceptions"]] == ["pending_payment"]
        assert group["counts"]["confirmed"] == 3
        assert body["stats"]["total_exceptions"] == 1
        assert body["has_active_filters"] is False

    def test_search_query(self, test_client, make_course, make_signup):
        course = upcoming_course(make_course)
        make_signup(course, participant_name="Kari Nordmann")
        make_signup(course, participant_name="Ola", participant_email="KARI.ola@example.no")
        make_signup(course, participant_name="Per")

        body = test_client.get(f"{BASE_URL}/grouped", params={"q": "kari"}).json()

        names = sorted(s["participant_name"] for s in body["filtered_signups"])
        assert names == ["Kari Nordmann", "Ola"]
        assert body["has_active_filters"] is True

    def test_time_all_disables_time_filter_in_active_mode(self, test_client, make_course, make_signup):
        course = make_course(start_date=utcnow().date() + timedelta(days=30))
        make_signup(course, participant_name="Langt frem")

        today = test_client.get(f"{BASE_URL}/grouped", params={"time": "today"}).json()
        unfiltered = test_client.get(f"{BASE_URL}/grouped", params={"time": "all"}).json()
        empty = test_client.get(f"{BASE_URL}/grouped", params={"time": ""}).json()

        assert today["filtered_signups"] == []
        assert [s["participant_name"] for s in unfiltered["filtered_signups"]] == ["Langt frem"]
        assert unfiltered["has_active_filters"] is True
        assert empty["filtered_signups"] == unfiltered["filtered_signups"]

    def test_unknown_time_filter(self, test_client):
        response = test_client.get(f"{BASE_URL}/grouped", params={"time": "yesterday"})

        assert response.status_code == 422

    def test_other_organization_is_forbidden(self, test_client):
        response = test_client.get("/api/v1/organizations/org_other/signups/grouped")

        assert response.status_code == 403

    def test_requires_authentication(self, test_client):
        app.dependency_overrides.pop(deps.get_current_user)

        response = test_client.get(f"{BASE_URL}/grouped")

        assert response.status_code == 401

    def test_token_for_org(self, test_client):
        app.dependency_overrides[deps.get_current_user] = lambda: TokenPayload(
            sub="user_2", org_id="org_other", exp=4102444800
        )

        response = test_client.get(f"{BASE_URL}/grouped")

        assert response.status_code == 403


class TestMarkPaid:

    def test_marks_paid(self, test_client, course, make_signup):
        signup = make_signup(course, payment_status="pending")

        response = test_client.post(f"{BASE_URL}/{signup.id}/mark-paid")

        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"

    def test_unknown_signup(self, test_client, course):
        response = test_client.post(f"{BASE_URL}/sgn_missing/mark-paid")

        assert response.status_code == 404


class TestCancel:

    def test_cancel_with_refund(self, refund_client, course, make_signup, gateway):
        signup = make_signup(course, stripe_payment_intent_id="pi_1", amount_paid=Decimal("250.00"))

        response = refund_client.post(
            f"{BASE_URL}/{signup.id}/cancel", json={"refund": True, "reason": "Flyttet"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["refunded"] is True
        assert body["signup"]["status"] == "cancelled"
        assert body["signup"]["payment_status"] == "refunded"
        gateway.create_refund.assert_called_once()

    def test_refund_failure_is_500_and_signup_kept(self, refund_client, db_session, course, make_signup, gateway):
        signup = make_signup(course, stripe_payment_intent_id="pi_1")
        gateway.create_refund.side_effect = RefundFailedError("declined")

        response = refund_client.post(f"{BASE_URL}/{signup.id}/cancel", json={"refund": True})

        db_session.refresh(signup)
        assert response.status_code == 500
        assert signup.status == "confirmed"

    def test_already_cancelled(self, refund_client, course, make_signup):
        signup = make_signup(course, status="cancelled")

        response = refund_client.post(f"{BASE_URL}/{signup.id}/cancel", json={})

        assert response.status_code == 400

    def test_cancel_offers_freed_seat(self, refund_client, db_session, make_course, make_signup, notifier):
        course = make_course(max_participants=1)
        seat = make_signup(course)
        waiting = make_signup(course, status="waitlist", waitlist_position=1, payment_status="pending")

        response = refund_client.post(f"{BASE_URL}/{seat.id}/cancel", json={"reason": "Skadet"})

        db_session.refresh(waiting)
        assert response.status_code == 200
        assert waiting.offer_status == "pending"
        templates = [call.args[1] for call in notifier.send.call_args_list]
        assert templates == ["signup-cancelled", "spot-available"]
