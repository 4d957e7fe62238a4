"""
Contact pipeline services.

Services:
    - ContactValidator: field rules and sanitisation for submissions
    - ContactNotifier: renders submissions and hands them to the mail transport
    - ContactSubmissionHandler: rate limit -> validation -> notification
    - health_service: process snapshot for the health endpoint
"""

from .contact_service import ContactSubmissionHandler, SubmissionOutcome, SubmissionState
from .contact_validator import ContactSubmission, ContactValidator, ValidationResult
from .notifier import ContactNotifier, NotificationResult, RequestMetadata

__all__ = [
    "ContactNotifier",
    "ContactSubmission",
    "ContactSubmissionHandler",
    "ContactValidator",
    "NotificationResult",
    "RequestMetadata",
    "SubmissionOutcome",
    "SubmissionState",
    "ValidationResult",
]
