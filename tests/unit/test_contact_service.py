"""Tests for the contact submission state machine."""
import logging
from unittest.mock import MagicMock

import pytest

from app.core.errors import TransportDeliveryError
from app.core.rate_limiter import ContactRateLimiter
from app.services.contact_service import (
    DELIVERY_FAILED_MESSAGE,
    RATE_LIMITED_MESSAGE,
    SUCCESS_MESSAGE,
    ContactSubmissionHandler,
    SubmissionState,
)
from app.services.contact_validator import ContactValidator
from app.services.notifier import ContactNotifier, RequestMetadata
from conftest import VALID_PAYLOAD, FakeTransport, make_settings

META = RequestMetadata(client_ip="203.0.113.10", user_agent="pytest", timestamp="t")


def _handler(transport=None, settings=None, limiter=None, validator=None):
    settings = settings or make_settings()
    return ContactSubmissionHandler(
        limiter=limiter or ContactRateLimiter(max_requests=5),
        validator=validator or ContactValidator(),
        notifier=ContactNotifier(settings, transport or FakeTransport()),
        settings=settings,
    )


def _events(caplog):
    return [r for r in caplog.records if getattr(r, "event_type", "").startswith("contact_")]


@pytest.fixture(autouse=True)
def _capture(caplog):
    caplog.set_level(logging.INFO, logger="app.services.contact_service")


class TestSuccess:
    @pytest.mark.asyncio
    async def test_valid_submission_is_sent(self, caplog):
        transport = FakeTransport()
        outcome = await _handler(transport).handle(VALID_PAYLOAD, META, request_id="req-1")

        assert outcome.state is SubmissionState.SUCCESS
        assert outcome.status_code == 200
        assert outcome.body["success"] is True
        assert outcome.body["message"] == SUCCESS_MESSAGE
        assert outcome.body["timestamp"].endswith("Z")
        assert outcome.headers["RateLimit-Remaining"] == "4"
        assert len(transport.sent) == 1

        [event] = _events(caplog)
        assert event.event_type == "contact_email_sent"
        assert event.email_domain == "example.com"
        assert event.request_id == "req-1"
        assert event.client_ip == "203.0.113.10"

    @pytest.mark.asyncio
    async def test_identical_submissions_are_not_deduplicated(self):
        transport = FakeTransport()
        handler = _handler(transport)
        for _ in range(2):
            outcome = await handler.handle(VALID_PAYLOAD, META)
            assert outcome.status_code == 200
        assert len(transport.sent) == 2


class TestValidationFailed:
    @pytest.mark.asyncio
    async def test_invalid_payload(self, caplog):
        transport = FakeTransport()
        outcome = await _handler(transport).handle(
            {"name": "", "email": "invalid-email", "subject": "", "message": "Short"}, META
        )
        assert outcome.state is SubmissionState.VALIDATION_FAILED
        assert outcome.status_code == 400
        assert outcome.body["message"] == "Validation failed"
        fields = {e["field"] for e in outcome.body["errors"]}
        assert fields == {"name", "email", "subject", "message"}
        assert transport.sent == []

        [event] = _events(caplog)
        assert event.event_type == "contact_validation_failed"
        assert event.fields == ["email", "message", "name", "subject"]
        assert event.levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_invalid_submissions_consume_quota(self):
        handler = _handler()
        for _ in range(5):
            outcome = await handler.handle({}, META)
            assert outcome.status_code == 400
        outcome = await handler.handle(VALID_PAYLOAD, META)
        assert outcome.status_code == 429


class TestRateLimited:
    @pytest.mark.asyncio
    async def test_sixth_submission_rejected(self, caplog):
        transport = FakeTransport()
        handler = _handler(transport)
        for _ in range(5):
            assert (await handler.handle(VALID_PAYLOAD, META)).status_code == 200
        caplog.clear()

        outcome = await handler.handle(VALID_PAYLOAD, META)
        assert outcome.state is SubmissionState.RATE_LIMITED
        assert outcome.status_code == 429
        assert outcome.body == {
            "success": False,
            "message": RATE_LIMITED_MESSAGE,
            "retryAfter": 3600,
        }
        assert outcome.headers["Retry-After"] == "3600"
        assert len(transport.sent) == 5

        [event] = _events(caplog)
        assert event.event_type == "contact_rate_limited"

    @pytest.mark.asyncio
    async def test_rejected_client_never_reaches_validator_or_notifier(self):
        exhausted = ContactRateLimiter(max_requests=1)
        exhausted.hit("x", now=0.0)
        limiter = MagicMock()
        limiter.hit.return_value = exhausted.hit("x", now=0.0)

        validator = MagicMock()
        transport = FakeTransport()
        outcome = await _handler(transport, limiter=limiter, validator=validator).handle(
            VALID_PAYLOAD, META
        )
        assert outcome.status_code == 429
        validator.validate.assert_not_called()
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_clients_are_limited_independently(self):
        handler = _handler()
        for _ in range(6):
            await handler.handle(VALID_PAYLOAD, META)
        other = RequestMetadata(client_ip="198.51.100.1", user_agent="", timestamp="t")
        assert (await handler.handle(VALID_PAYLOAD, other)).status_code == 200


class TestInternalError:
    @pytest.mark.asyncio
    async def test_delivery_failure(self, caplog):
        transport = FakeTransport(error=TransportDeliveryError("SMTP down"))
        outcome = await _handler(transport).handle(VALID_PAYLOAD, META)

        assert outcome.state is SubmissionState.INTERNAL_ERROR
        assert outcome.status_code == 500
        assert outcome.body["success"] is False
        assert outcome.body["message"] == DELIVERY_FAILED_MESSAGE
        assert "SMTP down" not in str(outcome.body)

        [event] = _events(caplog)
        assert event.event_type == "contact_delivery_failed"
        assert event.error_category == "delivery"
        assert event.levelno == logging.ERROR

    @pytest.mark.asyncio
    async def test_unconfigured_transport(self):
        outcome = await _handler(FakeTransport(configured=False)).handle(VALID_PAYLOAD, META)
        assert outcome.status_code == 500
        assert outcome.notification.error_category == "configuration"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, caplog):
        validator = MagicMock()
        validator.validate.side_effect = RuntimeError("validator exploded")
        outcome = await _handler(validator=validator).handle(VALID_PAYLOAD, META)

        assert outcome.state is SubmissionState.INTERNAL_ERROR
        assert outcome.status_code == 500
        assert "error" not in outcome.body
        assert "exploded" not in outcome.body["message"]

        [event] = _events(caplog)
        assert event.event_type == "contact_unexpected_error"
        assert event.error_type == "RuntimeError"
        assert event.exc_info is not None

    @pytest.mark.asyncio
    async def test_debug_exposes_error_detail(self):
        validator = MagicMock()
        validator.validate.side_effect = RuntimeError("validator exploded")
        handler = _handler(settings=make_settings(DEBUG=True), validator=validator)
        outcome = await handler.handle(VALID_PAYLOAD, META)
        assert outcome.body["error"] == "validator exploded"

    @pytest.mark.asyncio
    async def test_limiter_failure_is_contained(self):
        limiter = MagicMock()
        limiter.hit.side_effect = RuntimeError("lock broken")
        outcome = await _handler(limiter=limiter).handle(VALID_PAYLOAD, META)
        assert outcome.status_code == 500
        assert outcome.headers == {}
