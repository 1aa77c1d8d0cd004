"""
Email Provider

Delivers the email mirror of a notification. Template builders produce
EmailContent (subject, html, text); EmailMessage binds that content to one
recipient and the notification type it mirrors, and every SendResult carries
both back so job logs can tell which alert reached whom.

Transports:
- Resend (HTTP API, default when RESEND_API_KEY is set)
- SMTP (self-hosted relays)
- Console (development, logs instead of sending)

EmailProvider.send() never raises: a transport error becomes a failed
SendResult and the in-app record stays authoritative.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage as MIMEMessage
from typing import Optional

import aiosmtplib
import httpx

from riskwatch.notifications.templates import EmailContent

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
TYPE_HEADER = "X-Riskwatch-Notification-Type"


class EmailDeliveryError(Exception):
    """A transport refused or could not take a message."""


@dataclass
class EmailMessage:
    """Rendered alert email for one recipient."""
    to: str
    content: EmailContent
    notification_type: Optional[str] = None

    @property
    def subject(self) -> str:
        return self.content[0]

    @property
    def html_body(self) -> str:
        return self.content[1]

    @property
    def plain_text_body(self) -> str:
        return self.content[2]

    @property
    def label(self) -> str:
        return self.notification_type or "email"


@dataclass
class SendResult:
    """Outcome of one delivery, named by recipient and alert type."""
    to: str
    notification_type: Optional[str]
    success: bool
    provider: str
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailProvider(ABC):
    """Base class: subclasses implement deliver() for their transport."""

    name = "email"

    async def send(self, message: EmailMessage) -> SendResult:
        try:
            message_id = await self.deliver(message)
        except Exception as e:
            logger.error(f"[{self.name}] {message.label} to {message.to} failed: {e}")
            return SendResult(
                to=message.to,
                notification_type=message.notification_type,
                success=False,
                provider=self.name,
                error=str(e),
            )

        logger.info(f"[{self.name}] {message.label} delivered to {message.to}")
        return SendResult(
            to=message.to,
            notification_type=message.notification_type,
            success=True,
            provider=self.name,
            message_id=message_id,
        )

    @abstractmethod
    async def deliver(self, message: EmailMessage) -> Optional[str]:
        """Hand the message to the transport and return its message id."""


class ResendProvider(EmailProvider):
    """https://resend.com/docs/api-reference/emails/send-email"""

    name = "resend"

    def __init__(self, api_key: str, from_email: str, timeout: float = 30.0):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout

    async def deliver(self, message: EmailMessage) -> Optional[str]:
        if not self.api_key:
            raise EmailDeliveryError("Resend API key not configured")

        body = {
            "from": self.from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html_body,
            "text": message.plain_text_body,
        }
        if message.notification_type:
            body["tags"] = [{"name": "notification_type", "value": message.notification_type}]

        async with httpx.AsyncClient() as client:
            response = await client.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=body,
                timeout=self.timeout,
            )

        if response.status_code != 200:
            raise EmailDeliveryError(response.text)
        return response.json().get("id")


class SMTPProvider(EmailProvider):
    """Sends through an SMTP relay with a plain text part and an HTML alternative."""

    name = "smtp"

    def __init__(self, host: str, port: int, username: str, password: str,
                 from_email: str, use_tls: bool = True):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.use_tls = use_tls

    def build_mime(self, message: EmailMessage) -> MIMEMessage:
        mime = MIMEMessage()
        mime["Subject"] = message.subject
        mime["From"] = self.from_email
        mime["To"] = message.to
        if message.notification_type:
            mime[TYPE_HEADER] = message.notification_type
        mime.set_content(message.plain_text_body)
        mime.add_alternative(message.html_body, subtype="html")
        return mime

    async def deliver(self, message: EmailMessage) -> Optional[str]:
        if not (self.host and self.username and self.password):
            raise EmailDeliveryError("SMTP relay not configured")

        await aiosmtplib.send(
            self.build_mime(message),
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
        )
        return None


class ConsoleProvider(EmailProvider):
    """Logs the plain text body; used in development and when nothing is configured."""

    name = "console"

    async def deliver(self, message: EmailMessage) -> Optional[str]:
        logger.info(
            f"\n{'=' * 60}\n"
            f"{message.label} -> {message.to}\n"
            f"Subject: {message.subject}\n"
            f"{'-' * 60}\n"
            f"{message.plain_text_body}\n"
            f"{'=' * 60}"
        )
        return None


def get_email_provider(
    resend_api_key: Optional[str] = None,
    smtp_config: Optional[dict] = None,
    console_mode: bool = False,
    from_email: str = "Riskwatch <notifications@riskwatch.app>",
) -> EmailProvider:
    """Console mode wins, then Resend, then SMTP; console is the fallback."""
    if console_mode:
        return ConsoleProvider()
    if resend_api_key:
        return ResendProvider(api_key=resend_api_key, from_email=from_email)
    if smtp_config:
        return SMTPProvider(**smtp_config)

    logger.warning("No email provider configured, alert emails will only be logged")
    return ConsoleProvider()
