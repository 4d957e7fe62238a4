"""
Public contact form endpoint.

Accepts JSON, urlencoded or multipart bodies and delegates to the
submission handler built at start-up.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from app.core.rate_limiter import get_client_ip
from app.schemas.contact import CONTACT_RESPONSES, ContactRequest, ContactSuccessResponse
from app.services.contact_service import ContactSubmissionHandler
from app.services.notifier import RequestMetadata

logger = logging.getLogger(__name__)

router = APIRouter()

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def get_submission_handler(request: Request) -> ContactSubmissionHandler:
    """Return the handler owned by the running application."""
    return request.app.state.submission_handler


async def read_payload(request: Request) -> Dict[str, Any]:
    """Parse the request body into a field mapping; unusable bodies map to {}."""
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(_FORM_TYPES):
        try:
            form = await request.form()
        except (HTTPException, MultiPartException) as exc:
            logger.debug("Contact form body could not be parsed: %s", exc)
            return {}
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        logger.debug("Contact body is not valid JSON; treating as empty")
        return {}
    return payload if isinstance(payload, dict) else {}


@router.post(
    "/contact",
    response_model=ContactSuccessResponse,
    responses=CONTACT_RESPONSES,
    summary="Submit the contact form",
    description="Rate limited per client IP, validated, then forwarded by email.",
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {"schema": ContactRequest.model_json_schema()}
            },
        }
    },
)
async def submit_contact(
    request: Request,
    handler: ContactSubmissionHandler = Depends(get_submission_handler),
) -> JSONResponse:
    meta = RequestMetadata.now(
        client_ip=get_client_ip(request, request.app.state.trusted_networks),
        user_agent=request.headers.get("user-agent"),
    )
    payload = await read_payload(request)
    outcome = await handler.handle(
        payload, meta, request_id=getattr(request.state, "request_id", None)
    )
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body,
        headers=outcome.headers,
    )
