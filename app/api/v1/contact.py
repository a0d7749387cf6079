"""
Public contact endpoint.

POST accepts a JSON contact payload, OPTIONS answers CORS preflight.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from app.core.errors import BodyTooLarge
from app.core.rate_limiter import get_client_ip
from app.core.request_guard import check_body_size, read_body
from app.schemas.contact import ContactResponse
from app.services.contact_service import ContactService

logger = logging.getLogger(__name__)

router = APIRouter()

SUCCESS_MESSAGE = "Message sent successfully"


@router.options("/contact", include_in_schema=False)
async def contact_preflight(request: Request) -> Response:
    return request.app.state.origin_gate.preflight_response(request)


@router.post(
    "/contact",
    response_model=ContactResponse,
    summary="Send a contact message",
    description="Validates, rate-limits and verifies a contact submission, then delivers it.",
    responses={
        400: {"description": "Invalid JSON or form data"},
        403: {"description": "Human verification missing or failed"},
        413: {"description": "Request body too large"},
        429: {"description": "Too many requests"},
        500: {"description": "Configuration or delivery failure"},
    },
)
async def submit_contact(request: Request) -> JSONResponse:
    state = request.app.state
    service: ContactService = state.contact_service

    too_large = check_body_size(request, state.settings.MAX_BODY_BYTES)
    if too_large:
        raise BodyTooLarge(detail=too_large, public_message=too_large)

    client_ip = get_client_ip(request, state.trusted_networks)
    raw_body = await read_body(request, state.settings.MAX_BODY_BYTES)
    reference_id = await service.handle(raw_body, client_ip)

    body = ContactResponse(success=True, message=SUCCESS_MESSAGE, reference_id=reference_id)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=body.model_dump(by_alias=True),
        headers=state.origin_gate.cors_headers(request),
    )
