import os

# Keep test runs from writing log files into the working tree
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from email.message import EmailMessage  # noqa: E402
from typing import List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.config import Settings  # noqa: E402
from app.core.email import DeliveryReceipt  # noqa: E402
from app.main import create_app  # noqa: E402

VALID_PAYLOAD = {
    "name": "John Doe",
    "email": "john@example.com",
    "subject": "Test Inquiry",
    "message": "This is a test message from the contact form.",
}


class FakeTransport:
    """In-memory stand-in for the SMTP transport."""

    __test__ = False

    def __init__(self, configured: bool = True, error: Optional[Exception] = None):
        self.configured = configured
        self.error = error
        self.sent: List[EmailMessage] = []
        self.verified = 0

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def send(self, message: EmailMessage) -> DeliveryReceipt:
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return DeliveryReceipt(accepted=[str(message["To"])], rejected=[])

    async def verify(self) -> None:
        if self.error is not None:
            raise self.error
        self.verified += 1


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "test",
        "LOG_TO_FILE": False,
        "SMTP_HOST": "smtp.test",
        "SMTP_USER": "mailer@example.com",
        "SMTP_PASSWORD": "pass",
        "ADMIN_EMAIL": "admin@example.com",
        "FROM_EMAIL": "noreply@example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def app_settings() -> Settings:
    return make_settings()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def test_app(app_settings, transport):
    return create_app(app_settings, transport=transport)


@pytest.fixture()
def client(test_app):
    # Using 'with' context manager to trigger lifespan events (startup/shutdown)
    with TestClient(test_app) as c:
        yield c
