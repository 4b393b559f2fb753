"""
Outbound mail.

MailSender is the interface the services depend on. SmtpMailer talks to a
real SMTP server; FakeMailer records messages in memory and is used when no
SMTP host is configured (local development, tests).
"""

import smtplib
import ssl
import time
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, Dict, List, Optional
from uuid import uuid4

import structlog

from fishstore.errors import UpstreamServiceFailure
from fishstore.retry import with_backoff

logger = structlog.get_logger(__name__)

# Connection-level failures worth another attempt; auth or recipient
# rejections are not retried
TRANSIENT_SMTP_ERRORS = (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected)


class MailSender(ABC):
    """Abstract interface for mail dispatch adapters."""

    @abstractmethod
    def send(self, to: str, subject: str, body: str, html_body: Optional[str] = None) -> str:
        """Send one message and return its message id.

        Raises UpstreamServiceFailure when the message could not be handed
        over for delivery.
        """
        ...

    def close(self) -> None:
        """Release any held connection."""


class SmtpMailer(MailSender):
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: bool = False,
        sender: Optional[str] = None,
        sender_name: str = "FreshFish",
        timeout: float = 10.0,
        max_attempts: int = 3,
        backoff_factor: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.sender = sender or username or f"no-reply@{host}"
        self.sender_name = sender_name
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.sleep = sleep

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)

        connection = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        connection.ehlo()
        if connection.has_extn("starttls"):
            connection.starttls(context=context)
            connection.ehlo()
        return connection

    def send(self, to: str, subject: str, body: str, html_body: Optional[str] = None) -> str:
        message = EmailMessage()
        message["From"] = formataddr((self.sender_name, self.sender))
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(body)
        if html_body:
            message.add_alternative(html_body, subtype="html")

        def deliver():
            with self._connect() as connection:
                if self.username and self.password:
                    connection.login(self.username, self.password)
                connection.send_message(message)

        try:
            with_backoff(
                deliver,
                retry_on=TRANSIENT_SMTP_ERRORS,
                max_attempts=self.max_attempts,
                backoff_factor=self.backoff_factor,
                sleep=self.sleep,
                description="smtp send",
            )
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail delivery failed", to=to, subject=subject, error=str(exc))
            raise UpstreamServiceFailure("mail", "Error sending email") from exc

        logger.info("Mail sent", to=to, subject=subject, message_id=message["Message-ID"])
        return message["Message-ID"]


class FakeMailer(MailSender):
    """Mail sender that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: List[Dict[str, Optional[str]]] = []
        self.should_succeed = True

    def configure(self, should_succeed: bool = True) -> None:
        self.should_succeed = should_succeed

    def send(self, to: str, subject: str, body: str, html_body: Optional[str] = None) -> str:
        if not self.should_succeed:
            raise UpstreamServiceFailure("mail", "Error sending email")

        message_id = f"email-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "to": to,
                "subject": subject,
                "body": body,
                "html_body": html_body,
            }
        )
        logger.debug("Mail recorded", to=to, subject=subject)
        return message_id

    def reset(self) -> None:
        self.sent.clear()
        self.should_succeed = True
