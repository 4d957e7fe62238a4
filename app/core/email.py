from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import getaddresses
from typing import Dict, List, Protocol, Tuple

from app.core.config import Settings
from app.core.errors import TransportConfigurationError, TransportDeliveryError

logger = logging.getLogger(__name__)


@dataclass
class DeliveryReceipt:
    accepted: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)


class MailTransport(Protocol):
    @property
    def is_configured(self) -> bool: ...

    async def send(self, message: EmailMessage) -> DeliveryReceipt: ...

    async def verify(self) -> None: ...


def _recipients(message: EmailMessage) -> List[str]:
    fields = message.get_all("To", []) + message.get_all("Cc", [])
    return [addr for _, addr in getaddresses(fields) if addr]


class SmtpTransport:
    """Outbound SMTP delivery running blocking ``smtplib`` on a worker thread.

    ``SMTP_SECURE`` selects implicit TLS (usually port 465); otherwise the
    connection is upgraded with STARTTLS when the server offers it. Each
    call is bounded by ``SMTP_TIMEOUT`` and never retried.
    """

    def __init__(self, settings: Settings) -> None:
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.secure = settings.SMTP_SECURE
        self.user = settings.SMTP_USER
        self.password = (
            settings.SMTP_PASSWORD.get_secret_value() if settings.SMTP_PASSWORD else None
        )
        self.timeout = settings.SMTP_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def _connect(self) -> smtplib.SMTP:
        if not self.host:
            raise TransportConfigurationError("SMTP_HOST is not configured")

        if self.secure:
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout,
                context=ssl.create_default_context(),
            )
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)

        try:
            if not self.secure:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls(context=ssl.create_default_context())
                    server.ehlo()
            if self.user and self.password:
                server.login(self.user, self.password)
        except Exception:
            server.close()
            raise
        return server

    def _send_sync(self, message: EmailMessage) -> Tuple[List[str], Dict[str, tuple]]:
        recipients = _recipients(message)
        with self._connect() as server:
            refused = server.send_message(message)
        return recipients, refused

    def _verify_sync(self) -> None:
        with self._connect() as server:
            server.noop()

    async def _run(self, func, *args):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args), timeout=self.timeout
            )
        except TransportConfigurationError:
            raise
        except asyncio.TimeoutError as exc:
            raise TransportDeliveryError(
                f"SMTP operation timed out after {self.timeout}s"
            ) from exc
        except smtplib.SMTPRecipientsRefused as exc:
            raise TransportDeliveryError(
                f"All recipients refused: {', '.join(exc.recipients)}"
            ) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportDeliveryError(str(exc) or type(exc).__name__) from exc

    async def send(self, message: EmailMessage) -> DeliveryReceipt:
        recipients, refused = await self._run(self._send_sync, message)
        receipt = DeliveryReceipt(
            accepted=[r for r in recipients if r not in refused],
            rejected=list(refused),
        )
        logger.debug(
            "SMTP delivery finished accepted=%d rejected=%d",
            len(receipt.accepted),
            len(receipt.rejected),
        )
        return receipt

    async def verify(self) -> None:
        await self._run(self._verify_sync)


def build_transport(settings: Settings) -> MailTransport:
    return SmtpTransport(settings)

