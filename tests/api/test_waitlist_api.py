from datetime import timedelta

from studio_bookings.utils.dates import utcnow

INTERNAL_HEADERS = {"X-Internal-Api-Key": "test-internal-key"}


def test_join_waitlist(test_client, course, make_signup):
    make_signup(course, status="waitlist", waitlist_position=1)

    response = test_client.post(
        f"/api/v1/waitlist/courses/{course.id}/join",
        json={"participant_name": "Kari Nordmann", "participant_email": "kari@example.no"},
    )

    assert response.status_code == 201
    assert response.json()["status"] == "waitlist"
    assert response.json()["waitlist_position"] == 2


def test_join_rejects_invalid_email(test_client, course):
    response = test_client.post(
        f"/api/v1/waitlist/courses/{course.id}/join",
        json={"participant_name": "Kari", "participant_email": "kari-at-example"},
    )

    assert response.status_code == 422


def test_join_unknown_course(test_client, organization):
    response = test_client.post(
        "/api/v1/waitlist/courses/crs_missing/join",
        json={"participant_name": "Kari", "participant_email": "kari@example.no"},
    )

    assert response.status_code == 404


def test_validate_claim_statuses(test_client, course, make_signup):
    make_signup(
        course,
        status="waitlist",
        offer_status="pending",
        offer_claim_token="tok_ok",
        offer_expires_at=utcnow() + timedelta(hours=2),
    )
    make_signup(
        course,
        status="waitlist",
        offer_status="pending",
        offer_claim_token="tok_late",
        offer_expires_at=utcnow() - timedelta(hours=2),
    )

    valid = test_client.post("/api/v1/waitlist/claims/validate", json={"token": "tok_ok"})
    late = test_client.post("/api/v1/waitlist/claims/validate", json={"token": "tok_late"})
    unknown = test_client.post("/api/v1/waitlist/claims/validate", json={"token": "nope"})

    assert valid.status_code == 200
    assert valid.json()["status"] == "valid"
    assert valid.json()["course"]["title"] == "Vinyasa Flow"
    assert late.status_code == 400
    assert late.json()["status"] == "expired"
    assert unknown.status_code == 404
    assert unknown.json()["status"] == "invalid"


def test_promote_requires_internal_key(test_client, course):
    response = test_client.post(f"/api/v1/waitlist/courses/{course.id}/promote")

    assert response.status_code == 401


def test_promote(test_client, course, make_signup):
    waiting = make_signup(course, status="waitlist", waitlist_position=1, payment_status="pending")

    response = test_client.post(f"/api/v1/waitlist/courses/{course.id}/promote", headers=INTERNAL_HEADERS)

    assert response.status_code == 200
    assert response.json()["promoted"] is True
    assert response.json()["signup_id"] == waiting.id


def test_process_expired_offers(test_client, course, make_signup):
    make_signup(
        course,
        status="waitlist",
        waitlist_position=1,
        offer_status="pending",
        offer_claim_token="tok_lapsed",
        offer_expires_at=utcnow() - timedelta(minutes=5),
    )

    response = test_client.post("/api/v1/waitlist/expired-offers/process", headers=INTERNAL_HEADERS)

    assert response.status_code == 200
    assert response.json()["expired"] == 1


def test_health(test_client):
    assert test_client.get("/").json() == {"status": "Studio Bookings Service is running"}
