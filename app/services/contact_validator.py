"""
Contact form validation and sanitisation.

Rules are kept as module-level tables (disposable domains, spam patterns,
name alphabet) so they can be tested and swapped without touching the
submission pipeline. ``ContactValidator.validate`` never raises for bad
input: every violated rule becomes a message in ``ValidationResult.errors``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple

from email_validator import EmailNotValidError, validate_email

from app.core.config import Settings
from app.core.sanitizer import escape_html

FIELDS: Tuple[str, ...] = ("name", "email", "subject", "message")

DISPOSABLE_EMAIL_DOMAINS = frozenset(
    {
        "10minutemail.com",
        "tempmail.org",
        "guerrillamail.com",
        "mailinator.com",
    }
)

SPAM_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"viagra",
        r"casino",
        r"lottery",
        r"winner",
        r"congratulations.*won",
        r"click.*here.*now",
        r"urgent.*response",
        r"limited.*time.*offer",
    )
)

# ASCII letters, whitespace, hyphen, apostrophe, period
NAME_PATTERN = re.compile(r"^[A-Za-z\s\-'.]+$")
EMAIL_SHAPE_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class ValidationBounds:
    name_min: int = 2
    name_max: int = 100
    email_max: int = 254
    subject_min: int = 5
    subject_max: int = 200
    message_min: int = 10
    message_max: int = 1000

    @classmethod
    def from_settings(cls, cfg: Settings) -> "ValidationBounds":
        return cls(
            name_min=cfg.NAME_MIN_LENGTH,
            name_max=cfg.NAME_MAX_LENGTH,
            email_max=cfg.EMAIL_MAX_LENGTH,
            subject_min=cfg.SUBJECT_MIN_LENGTH,
            subject_max=cfg.SUBJECT_MAX_LENGTH,
            message_min=cfg.MESSAGE_MIN_LENGTH,
            message_max=cfg.MESSAGE_MAX_LENGTH,
        )


@dataclass(frozen=True)
class ContactSubmission:
    """A validated, trimmed and HTML-escaped contact form payload."""

    name: str
    email: str
    subject: str
    message: str

    @property
    def email_domain(self) -> str:
        return self.email.rsplit("@", 1)[-1]


@dataclass(frozen=True)
class ValidationResult:
    errors: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    values: Mapping[str, str] = field(default_factory=dict)
    submission: Optional[ContactSubmission] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error_list(self) -> List[Dict[str, Any]]:
        """Flatten errors into ``[{field, message, value}]`` in field order."""
        return [
            {"field": name, "message": msg, "value": self.values.get(name, "")}
            for name in FIELDS
            for msg in self.errors.get(name, ())
        ]


def _coerce(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return _coerce(value[0]) if value else ""
    return str(value).strip()


def is_disposable_email(address: str) -> bool:
    if "@" not in address:
        return False
    return address.rsplit("@", 1)[1].strip().lower() in DISPOSABLE_EMAIL_DOMAINS


def contains_spam(text: str) -> bool:
    return any(pattern.search(text) for pattern in SPAM_PATTERNS)


def normalize_email(address: str) -> str:
    """Lower-case the domain; the local part (dots, +tags, case) is kept."""
    local, _, domain = address.rpartition("@")
    return f"{local}@{domain.lower()}"


class ContactValidator:
    """Pure rule set over the contact form fields."""

    def __init__(self, bounds: Optional[ValidationBounds] = None) -> None:
        self.bounds = bounds or ValidationBounds()

    def validate(self, payload: Mapping[str, Any]) -> ValidationResult:
        raw = {name: _coerce(payload.get(name)) for name in FIELDS}
        errors: Dict[str, List[str]] = {}
        values: Dict[str, str] = {}

        values["name"] = escape_html(raw["name"])
        self._collect(errors, "name", self._check_name(raw["name"]))

        email, email_errors = self._check_email(raw["email"])
        values["email"] = email
        self._collect(errors, "email", email_errors)

        values["subject"] = escape_html(raw["subject"])
        self._collect(errors, "subject", self._check_subject(raw["subject"]))

        values["message"] = escape_html(raw["message"])
        self._collect(errors, "message", self._check_message(raw["message"]))

        frozen_errors = MappingProxyType({k: tuple(v) for k, v in errors.items()})
        frozen_values = MappingProxyType(values)
        if frozen_errors:
            return ValidationResult(errors=frozen_errors, values=frozen_values)

        return ValidationResult(
            errors=frozen_errors,
            values=frozen_values,
            submission=ContactSubmission(
                name=values["name"],
                email=values["email"],
                subject=values["subject"],
                message=values["message"],
            ),
        )

    @staticmethod
    def _collect(errors: Dict[str, List[str]], name: str, messages: List[str]) -> None:
        if messages:
            errors[name] = messages

    def _check_name(self, value: str) -> List[str]:
        b = self.bounds
        messages = []
        if not value:
            messages.append("Name is required")
        if not b.name_min <= len(value) <= b.name_max:
            messages.append(
                f"Name must be between {b.name_min} and {b.name_max} characters"
            )
        if not NAME_PATTERN.match(value):
            messages.append(
                "Name can only contain letters, spaces, hyphens, apostrophes, and periods"
            )
        return messages

    def _check_email(self, value: str) -> Tuple[str, List[str]]:
        messages = []
        if not value:
            messages.append("Email is required")

        normalized = value
        too_long = len(value) > self.bounds.email_max
        if not too_long:
            try:
                info = validate_email(
                    value, check_deliverability=False, test_environment=True
                )
                normalized = normalize_email(info.normalized)
            except EmailNotValidError:
                messages.append("Please provide a valid email address")
        if too_long:
            messages.append("Email address is too long")

        # The shape check short-circuits the disposable-domain lookup
        if not EMAIL_SHAPE_PATTERN.match(normalized):
            messages.append("Invalid email format")
        elif is_disposable_email(normalized):
            messages.append("Please use a permanent email address")
        return normalized, messages

    def _check_subject(self, value: str) -> List[str]:
        b = self.bounds
        messages = []
        if not value:
            messages.append("Subject is required")
        if not b.subject_min <= len(value) <= b.subject_max:
            messages.append(
                f"Subject must be between {b.subject_min} and {b.subject_max} characters"
            )
        return messages

    def _check_message(self, value: str) -> List[str]:
        b = self.bounds
        messages = []
        if not value:
            messages.append("Message is required")
        if not b.message_min <= len(value) <= b.message_max:
            messages.append(
                f"Message must be between {b.message_min} and {b.message_max} characters"
            )
        if contains_spam(value):
            messages.append("Message contains prohibited content")
        return messages
