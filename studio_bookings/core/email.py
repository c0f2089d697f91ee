# studio_bookings/core/email.py
"""
Email service using Resend for participant notifications.

Every send is best-effort: a failed email is logged and reported in the
return value, never raised, so a booking is never rolled back because an
email could not be delivered.
"""
import logging
from typing import Any, Callable, Dict

import resend

from studio_bookings.core.config import settings

logger = logging.getLogger(__name__)

SIGNUP_CONFIRMATION = "signup-confirmation"
SPOT_AVAILABLE = "spot-available"
OFFER_EXPIRED = "offer-expired"
SIGNUP_CANCELLED = "signup-cancelled"
COURSE_CANCELLED = "course-cancelled"


def init_resend():
    """Initialize Resend with API key."""
    resend.api_key = settings.RESEND_API_KEY


def _layout(title: str, body: str, organization_name: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background: #354f41; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
            .content {{ background: #f9f7f4; padding: 24px; border-radius: 0 0 10px 10px; }}
            .button {{ display: inline-block; background: #354f41; color: white; padding: 12px 24px; border-radius: 6px; text-decoration: none; }}
            .footer {{ text-align: center; color: #888; font-size: 12px; margin-top: 20px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header"><h1>{title}</h1></div>
            <div class="content">{body}</div>
            <div class="footer"><p>Sendt av {organization_name}</p></div>
        </div>
    </body>
    </html>
    """


def render_signup_confirmation(data: Dict[str, Any]) -> tuple[str, str]:
    location = data.get("location")
    location_html = f"<p><strong>Sted:</strong> {location}</p>" if location else ""
    time_html = f"<p><strong>Tid:</strong> {data['courseTime']}</p>" if data.get("courseTime") else ""
    body = f"""
        <p>Hei {data.get('participantName', '')},</p>
        <p>Du er påmeldt <strong>{data['courseName']}</strong>.</p>
        <p><strong>Dato:</strong> {data.get('courseDate', '')}</p>
        {time_html}
        {location_html}
        <p>Vi gleder oss til å se deg!</p>
    """
    subject = f"Bekreftelse: {data['courseName']}"
    return subject, _layout("Du er påmeldt!", body, data["organizationName"])


def render_spot_available(data: Dict[str, Any]) -> tuple[str, str]:
    body = f"""
        <p>Hei {data.get('participantName', '')},</p>
        <p>Det har blitt ledig plass på <strong>{data['courseName']}</strong>.</p>
        <p>Plassen holdes av for deg til <strong>{data['expiresAt']}</strong>.</p>
        <p><a class="button" href="{data['claimUrl']}">Ta plassen</a></p>
    """
    subject = f"Ledig plass: {data['courseName']}"
    return subject, _layout("Ledig plass", body, data["organizationName"])


def render_offer_expired(data: Dict[str, Any]) -> tuple[str, str]:
    body = f"""
        <p>Hei {data.get('participantName', '')},</p>
        <p>Tilbudet om plass på <strong>{data['courseName']}</strong> har utløpt.</p>
        <p>Du står fortsatt på ventelisten og får beskjed hvis en ny plass blir ledig.</p>
    """
    subject = f"Tilbudet har utløpt: {data['courseName']}"
    return subject, _layout("Tilbudet har utløpt", body, data["organizationName"])


def render_signup_cancelled(data: Dict[str, Any]) -> tuple[str, str]:
    reason = data.get("reason")
    reason_html = f"<p><strong>Begrunnelse:</strong> {reason}</p>" if reason else ""
    refund_html = "<p>Beløpet blir refundert til kortet ditt.</p>" if data.get("refunded") else ""
    body = f"""
        <p>Hei {data.get('participantName', '')},</p>
        <p>Påmeldingen din til <strong>{data['courseName']}</strong> er avmeldt.</p>
        {reason_html}
        {refund_html}
    """
    subject = f"Avmeldt: {data['courseName']}"
    return subject, _layout("Påmeldingen er avmeldt", body, data["organizationName"])


def render_course_cancelled(data: Dict[str, Any]) -> tuple[str, str]:
    reason = data.get("reason")
    reason_html = f"<p><em>Årsak: {reason}</em></p>" if reason else ""
    refund_html = (
        f"<p>{data['refundAmount']} kr blir tilbakebetalt til betalingsmetoden din innen 5-10 virkedager.</p>"
        if data.get("refunded")
        else ""
    )
    body = f"""
        <p>Hei {data.get('participantName', '')},</p>
        <p>Vi må dessverre informere om at <strong>{data['courseName']}</strong> er avlyst.</p>
        {reason_html}
        {refund_html}
        <p>Vi beklager eventuelle ulemper dette måtte medføre.</p>
    """
    subject = f"Kurs avlyst: {data['courseName']}"
    return subject, _layout("Kurset er avlyst", body, data["organizationName"])


TEMPLATES: Dict[str, Callable[[Dict[str, Any]], tuple[str, str]]] = {
    SIGNUP_CONFIRMATION: render_signup_confirmation,
    SPOT_AVAILABLE: render_spot_available,
    OFFER_EXPIRED: render_offer_expired,
    SIGNUP_CANCELLED: render_signup_cancelled,
    COURSE_CANCELLED: render_course_cancelled,
}


class EmailNotifier:
    """
    Sends templated participant emails through Resend.

    Services receive a notifier instead of calling Resend directly so tests
    can substitute a mock.
    """

    def send(self, to: str, template: str, template_data: Dict[str, Any]) -> dict:
        """
        Render `template` with `template_data` and send it to `to`.

        Returns:
            {"success": True, "id": ...} or {"success": False, "error": ...}
        """
        renderer = TEMPLATES.get(template)
        if renderer is None:
            logger.error(f"Unknown email template '{template}', not sending to {to}")
            return {"success": False, "error": f"unknown template {template}"}

        try:
            init_resend()
            subject, html_content = renderer(template_data)
            params = {
                "from": settings.EMAIL_FROM,
                "to": [to],
                "subject": subject,
                "html": html_content,
            }
            response = resend.Emails.send(params)
            logger.info(f"Sent '{template}' email to {to}")
            return {"success": True, "id": response.get("id")}
        except Exception as e:
            logger.error(f"Failed to send '{template}' email to {to}: {e}")
            return {"success": False, "error": str(e)}


notifier = EmailNotifier()
