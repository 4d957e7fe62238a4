from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from app.core.config import Settings
from app.core.errors import GENERIC_ERROR_MESSAGE, error_envelope, utc_timestamp
from app.core.logging import LogEvent, log_event
from app.core.rate_limiter import ContactRateLimiter, RateLimitDecision
from app.services.contact_validator import ContactValidator, ValidationResult
from app.services.notifier import ContactNotifier, NotificationResult, RequestMetadata

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Thank you for your message! We will get back to you soon."
RATE_LIMITED_MESSAGE = "Too many contact form submissions. Please try again later."
DELIVERY_FAILED_MESSAGE = "Failed to send your message. Please try again later."


class SubmissionState(str, Enum):
    SUCCESS = "success"
    VALIDATION_FAILED = "validation_failed"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"


@dataclass
class SubmissionOutcome:
    state: SubmissionState
    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    notification: Optional[NotificationResult] = None


class ContactSubmissionHandler:
    """Run one contact submission through rate limit, validation and delivery.

    Rate limiting is evaluated before validation, so rejected clients never
    reach the validator or the notifier. Each call ends in exactly one
    terminal state and emits exactly one structured log event.
    """

    def __init__(
        self,
        limiter: ContactRateLimiter,
        validator: ContactValidator,
        notifier: ContactNotifier,
        settings: Settings,
    ) -> None:
        self.limiter = limiter
        self.validator = validator
        self.notifier = notifier
        self.settings = settings

    async def handle(
        self,
        payload: Mapping[str, Any],
        meta: RequestMetadata,
        request_id: Optional[str] = None,
    ) -> SubmissionOutcome:
        context = {
            "client_ip": meta.client_ip,
            "user_agent": meta.user_agent,
            "request_id": request_id,
            "submitted_at": meta.timestamp,
        }
        decision: Optional[RateLimitDecision] = None
        try:
            decision = self.limiter.hit(meta.client_ip)
            if not decision.allowed:
                return self._rate_limited(decision, context)

            result = self.validator.validate(payload)
            if not result.is_valid:
                return self._validation_failed(result, decision, context)

            notification = await self.notifier.notify(result.submission, meta)
            if not notification.success:
                return self._delivery_failed(notification, result, decision, context)

            return self._succeeded(notification, result, decision, context)
        except Exception as exc:
            return self._unexpected(exc, decision, context)

    def _rate_limited(self, decision: RateLimitDecision, context: dict) -> SubmissionOutcome:
        log_event(
            logger,
            LogEvent(
                logging.WARNING,
                "Rate limit exceeded for contact form",
                "contact_rate_limited",
                {**context, "error_category": "rate_limit", "limit": decision.limit},
            ),
        )
        return SubmissionOutcome(
            state=SubmissionState.RATE_LIMITED,
            status_code=429,
            body={
                "success": False,
                "message": RATE_LIMITED_MESSAGE,
                "retryAfter": decision.retry_after,
            },
            headers=decision.headers(),
        )

    def _validation_failed(
        self, result: ValidationResult, decision: RateLimitDecision, context: dict
    ) -> SubmissionOutcome:
        log_event(
            logger,
            LogEvent(
                logging.WARNING,
                "Contact form validation failed",
                "contact_validation_failed",
                {
                    **context,
                    "error_category": "validation",
                    "fields": sorted(result.errors),
                },
            ),
        )
        return SubmissionOutcome(
            state=SubmissionState.VALIDATION_FAILED,
            status_code=400,
            body={
                "success": False,
                "message": "Validation failed",
                "errors": result.error_list(),
            },
            headers=decision.headers(),
        )

    def _delivery_failed(
        self,
        notification: NotificationResult,
        result: ValidationResult,
        decision: RateLimitDecision,
        context: dict,
    ) -> SubmissionOutcome:
        log_event(
            logger,
            LogEvent(
                logging.ERROR,
                "Failed to send contact email",
                "contact_delivery_failed",
                {
                    **context,
                    "error": notification.error,
                    "error_category": notification.error_category,
                    "email_domain": result.submission.email_domain,
                },
            ),
        )
        return SubmissionOutcome(
            state=SubmissionState.INTERNAL_ERROR,
            status_code=500,
            body=error_envelope(DELIVERY_FAILED_MESSAGE),
            headers=decision.headers(),
            notification=notification,
        )

    def _succeeded(
        self,
        notification: NotificationResult,
        result: ValidationResult,
        decision: RateLimitDecision,
        context: dict,
    ) -> SubmissionOutcome:
        log_event(
            logger,
            LogEvent(
                logging.INFO,
                "Contact email sent successfully",
                "contact_email_sent",
                {
                    **context,
                    "message_id": notification.message_id,
                    "email_domain": result.submission.email_domain,
                    "accepted_count": len(notification.accepted),
                    "rejected_count": len(notification.rejected),
                },
            ),
        )
        return SubmissionOutcome(
            state=SubmissionState.SUCCESS,
            status_code=200,
            body={"success": True, "message": SUCCESS_MESSAGE, "timestamp": utc_timestamp()},
            headers=decision.headers(),
            notification=notification,
        )

    def _unexpected(
        self, exc: Exception, decision: Optional[RateLimitDecision], context: dict
    ) -> SubmissionOutcome:
        log_event(
            logger,
            LogEvent(
                logging.ERROR,
                f"Contact form submission error: {exc}",
                "contact_unexpected_error",
                {
                    **context,
                    "error": str(exc),
                    "error_category": "unexpected",
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            ),
        )
        extra = {"error": str(exc)} if self.settings.DEBUG else {}
        return SubmissionOutcome(
            state=SubmissionState.INTERNAL_ERROR,
            status_code=500,
            body=error_envelope(GENERIC_ERROR_MESSAGE, **extra),
            headers=decision.headers() if decision else {},
        )
