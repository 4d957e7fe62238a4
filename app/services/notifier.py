from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.headerregistry import Address
from email.message import EmailMessage
from email.utils import make_msgid
from typing import List, Optional

from app.core.config import Settings
from app.core.email import MailTransport
from app.core.errors import ContactError, TransportConfigurationError
from app.services.contact_validator import ContactSubmission

logger = logging.getLogger(__name__)

_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>New Contact Form Submission</title>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #f4f4f4; padding: 20px; text-align: center; }}
        .content {{ padding: 20px; }}
        .field {{ margin-bottom: 15px; }}
        .label {{ font-weight: bold; color: #555; }}
        .value {{ margin-top: 5px; padding: 10px; background: #f9f9f9; border-radius: 4px; }}
        .meta {{ font-size: 12px; color: #888; border-top: 1px solid #eee; padding-top: 15px; margin-top: 20px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h2>New Contact Form Submission</h2>
        </div>
        <div class="content">
            <div class="field">
                <div class="label">Name:</div>
                <div class="value">{name}</div>
            </div>
            <div class="field">
                <div class="label">Email:</div>
                <div class="value">{email}</div>
            </div>
            <div class="field">
                <div class="label">Subject:</div>
                <div class="value">{subject}</div>
            </div>
            <div class="field">
                <div class="label">Message:</div>
                <div class="value">{message}</div>
            </div>
            <div class="meta">
                <p><strong>Submission Details:</strong></p>
                <p>Timestamp: {timestamp}</p>
                <p>IP Address: {ip}</p>
                <p>User Agent: {user_agent}</p>
            </div>
        </div>
    </div>
</body>
</html>"""

_TEXT_TEMPLATE = """\
NEW CONTACT FORM SUBMISSION
==========================

Name: {name}
Email: {email}
Subject: {subject}

Message:
{message}

---
Submission Details:
Timestamp: {timestamp}
IP Address: {ip}
User Agent: {user_agent}"""


def _header_text(value: str) -> str:
    return " ".join(html.unescape(value).split())


@dataclass(frozen=True)
class RequestMetadata:
    client_ip: str
    user_agent: str
    timestamp: str

    @classmethod
    def now(cls, client_ip: str, user_agent: Optional[str]) -> "RequestMetadata":
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        return cls(client_ip=client_ip, user_agent=user_agent or "", timestamp=stamp)


@dataclass
class NotificationResult:
    success: bool
    message_id: Optional[str] = None
    accepted: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_category: Optional[str] = None


class ContactNotifier:
    """Render contact submissions as email and hand them to a mail transport.

    Delivery problems are reported through ``NotificationResult``; the
    notifier makes exactly one attempt per call.
    """

    def __init__(self, settings: Settings, transport: MailTransport) -> None:
        self.settings = settings
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.transport.is_configured and self.settings.ADMIN_EMAIL)

    def render_text(self, submission: ContactSubmission, meta: RequestMetadata) -> str:
        return _TEXT_TEMPLATE.format(
            name=submission.name,
            email=submission.email,
            subject=submission.subject,
            message=submission.message,
            timestamp=meta.timestamp,
            ip=meta.client_ip,
            user_agent=meta.user_agent,
        )

    def render_html(self, submission: ContactSubmission, meta: RequestMetadata) -> str:
        # Submission fields arrive escaped from the validator
        return _HTML_TEMPLATE.format(
            name=submission.name,
            email=html.escape(submission.email),
            subject=submission.subject,
            message=submission.message.replace("\n", "<br>"),
            timestamp=html.escape(meta.timestamp),
            ip=html.escape(meta.client_ip),
            user_agent=html.escape(meta.user_agent),
        )

    def build_message(
        self, submission: ContactSubmission, meta: RequestMetadata
    ) -> EmailMessage:
        cfg = self.settings
        if not cfg.ADMIN_EMAIL:
            raise TransportConfigurationError("ADMIN_EMAIL is not configured")
        sender = cfg.sender_address
        if not sender:
            raise TransportConfigurationError("FROM_EMAIL or SMTP_USER must be configured")

        msg = EmailMessage()
        msg["From"] = Address(display_name=cfg.FROM_NAME, addr_spec=sender)
        msg["To"] = cfg.ADMIN_EMAIL
        msg["Reply-To"] = submission.email
        msg["Subject"] = f"Contact Form: {_header_text(submission.subject)}"
        msg["Message-ID"] = make_msgid(domain=sender.rsplit("@", 1)[-1])
        msg["X-Contact-Form"] = "true"
        msg["X-Sender-IP"] = meta.client_ip
        msg["X-Sender-Name"] = _header_text(submission.name)

        msg.set_content(self.render_text(submission, meta))
        msg.add_alternative(self.render_html(submission, meta), subtype="html")
        return msg

    async def notify(
        self, submission: ContactSubmission, meta: RequestMetadata
    ) -> NotificationResult:
        """Send one notification for ``submission``; never raises ContactError."""
        try:
            if not self.transport.is_configured:
                raise TransportConfigurationError("Email transporter not initialized")
            message = self.build_message(submission, meta)
            receipt = await self.transport.send(message)
        except ContactError as exc:
            return NotificationResult(
                success=False, error=str(exc), error_category=exc.category
            )

        logger.debug(
            "Contact notification dispatched message_id=%s accepted=%d",
            message["Message-ID"],
            len(receipt.accepted),
        )
        return NotificationResult(
            success=True,
            message_id=str(message["Message-ID"]),
            accepted=receipt.accepted,
            rejected=receipt.rejected,
        )

    async def verify_connection(self) -> NotificationResult:
        """Handshake (and log in) with the transport without sending anything."""
        try:
            if not self.transport.is_configured:
                raise TransportConfigurationError("Email transporter not initialized")
            await self.transport.verify()
        except ContactError as exc:
            logger.error(
                "Email connection verification failed: %s",
                exc,
                extra={"event_type": "smtp_verify_failed", "error_category": exc.category},
            )
            return NotificationResult(
                success=False, error=str(exc), error_category=exc.category
            )
        logger.info(
            "Email connection verified successfully",
            extra={"event_type": "smtp_verified"},
        )
        return NotificationResult(success=True)

    async def send_test_email(self) -> NotificationResult:
        submission = ContactSubmission(
            name="Test User",
            email="test@example.com",
            subject="Test Email",
            message="This is a test email to verify the email service is working correctly.",
        )
        return await self.notify(submission, RequestMetadata.now("127.0.0.1", "Test Agent"))
