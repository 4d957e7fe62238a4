from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ContactRequest(BaseModel):
    """Documented shape of the contact payload; validation rules live in
    ``app.services.contact_validator`` so every violation can be reported."""

    name: str = Field(..., examples=["John Doe"])
    email: str = Field(..., examples=["john@example.com"])
    subject: str = Field(..., examples=["Test Inquiry"])
    message: str = Field(..., examples=["This is a test message from the contact form."])


class ContactSuccessResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str


class FieldError(BaseModel):
    field: str
    message: str
    value: Optional[str] = None


class ContactValidationErrorResponse(BaseModel):
    success: bool = False
    message: str = "Validation failed"
    errors: List[FieldError]


class ContactRateLimitedResponse(BaseModel):
    success: bool = False
    message: str
    retryAfter: int = Field(..., description="Seconds until a new submission is accepted")


class ContactErrorResponse(BaseModel):
    success: bool = False
    message: str
    timestamp: str
    error: Optional[str] = Field(None, description="Exception detail, DEBUG only")


CONTACT_RESPONSES = {
    400: {"model": ContactValidationErrorResponse, "description": "Validation failed"},
    429: {"model": ContactRateLimitedResponse, "description": "Rate limit exceeded"},
    500: {"model": ContactErrorResponse, "description": "Delivery or internal error"},
}
