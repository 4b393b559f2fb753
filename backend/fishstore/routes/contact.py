"""Contact form: forwards the message to the shop's notification address."""

import html
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends

from fishstore import schemas
from fishstore.config import Settings
from fishstore.deps import get_mailer, get_settings
from fishstore.errors import UpstreamServiceFailure
from fishstore.mail import MailSender

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/contact", tags=["contact"])


def _render(body: schemas.ContactRequest, received_at: str):
    text = (
        "New contact form submission:\n\n"
        f"Name: {body.name}\nEmail: {body.email}\n"
        + (f"Phone: {body.phone}\n" if body.phone else "")
        + f"Message:\n{body.message}\n\nReceived at: {received_at}"
    )
    html_body = (
        "<h2>New Contact Form Submission</h2>"
        f"<p><strong>Name:</strong> {html.escape(body.name)}</p>"
        f"<p><strong>Email:</strong> {html.escape(str(body.email))}</p>"
        + (f"<p><strong>Phone:</strong> {html.escape(body.phone)}</p>" if body.phone else "")
        + "<p><strong>Message:</strong></p>"
        + f"<p>{html.escape(body.message).replace(chr(10), '<br>')}</p>"
        + f"<hr><p>Received at: {received_at}</p>"
    )
    return text, html_body


@router.post("", response_model=schemas.ContactResponse)
def send_contact_message(
    body: schemas.ContactRequest,
    mailer: MailSender = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    recipient = settings.notification_email or settings.smtp_from
    if not recipient:
        logger.error("Contact form received but no notification address is configured")
        raise UpstreamServiceFailure("mail", "Error sending message. Please try again later.")

    text, html_body = _render(body, datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    try:
        mailer.send(
            to=recipient,
            subject=f"New Contact Form Submission from customer {body.name}",
            body=text,
            html_body=html_body,
        )
    except UpstreamServiceFailure as exc:
        raise UpstreamServiceFailure("mail", "Error sending message. Please try again later.") from exc

    return {"message": f"Thank you for your message! We will get back to you soon {body.name}.", "success": True}
