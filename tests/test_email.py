from unittest.mock import patch

from studio_bookings.core.email import (
    COURSE_CANCELLED,
    OFFER_EXPIRED,
    SIGNUP_CANCELLED,
    SIGNUP_CONFIRMATION,
    SPOT_AVAILABLE,
    EmailNotifier,
)

CONFIRMATION_DATA = {
    "participantName": "Kari",
    "courseName": "Vinyasa Flow",
    "courseDate": "tirsdag 10. mars 2026",
    "courseTime": "18:00",
    "location": "Sal 1",
    "organizationName": "Studio Flyt",
}


@patch("studio_bookings.core.email.resend.Emails.send", return_value={"id": "email_1"})
def test_send_confirmation(mock_send):
    result = EmailNotifier().send("kari@example.no", SIGNUP_CONFIRMATION, CONFIRMATION_DATA)

    assert result == {"success": True, "id": "email_1"}
    params = mock_send.call_args.args[0]
    assert params["to"] == ["kari@example.no"]
    assert params["subject"] == "Bekreftelse: Vinyasa Flow"
    assert "tirsdag 10. mars 2026" in params["html"]
    assert "Sal 1" in params["html"]


@patch("studio_bookings.core.email.resend.Emails.send", side_effect=Exception("rate limited"))
def test_send_failure_is_reported_not_raised(mock_send):
    result = EmailNotifier().send("kari@example.no", SIGNUP_CONFIRMATION, CONFIRMATION_DATA)

    assert result["success"] is False
    assert "rate limited" in result["error"]


@patch("studio_bookings.core.email.resend.Emails.send")
def test_unknown_template_is_not_sent(mock_send):
    result = EmailNotifier().send("kari@example.no", "newsletter", {})

    assert result["success"] is False
    mock_send.assert_not_called()


@patch("studio_bookings.core.email.resend.Emails.send", return_value={"id": "email_2"})
def test_waitlist_templates_render(mock_send):
    notifier = EmailNotifier()
    common = {"participantName": "Kari", "courseName": "Yin", "organizationName": "Studio Flyt"}

    notifier.send("kari@example.no", SPOT_AVAILABLE, {**common, "claimUrl": "https://ease.no/claim-spot/tok", "expiresAt": "onsdag 4. mars kl. 11:00"})
    notifier.send("kari@example.no", OFFER_EXPIRED, common)
    notifier.send("kari@example.no", SIGNUP_CANCELLED, {**common, "reason": "Syk", "refunded": True})

    htmls = [call.args[0]["html"] for call in mock_send.call_args_list]
    assert "https://ease.no/claim-spot/tok" in htmls[0]
    assert "utløpt" in htmls[1]
    assert "Syk" in htmls[2] and "refundert" in htmls[2]


@patch("studio_bookings.core.email.resend.Emails.send", return_value={"id": "email_3"})
def test_course_cancelled_mentions_refund_only_when_refunded(mock_send):
    notifier = EmailNotifier()
    common = {"participantName": "Kari", "courseName": "Yin", "organizationName": "Studio Flyt", "reason": "Syk"}

    notifier.send("kari@example.no", COURSE_CANCELLED, {**common, "refunded": True, "refundAmount": "250.00"})
    notifier.send("ola@example.no", COURSE_CANCELLED, {**common, "refunded": False, "refundAmount": "0"})

    refunded, unpaid = [call.args[0] for call in mock_send.call_args_list]
    assert refunded["subject"] == "Kurs avlyst: Yin"
    assert "250.00 kr blir tilbakebetalt" in refunded["html"]
    assert "Årsak: Syk" in refunded["html"]
    assert "tilbakebetalt" not in unpaid["html"]
