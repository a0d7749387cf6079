"""
=============================================================================
CONTACTGATE - ERROR HANDLING MODULE
=============================================================================
Error taxonomy for the contact pipeline and the FastAPI handlers that turn
it into ``{"success": false, "message": ...}`` responses.

Every member carries one HTTP status and one generic, user-facing message.
Provider detail (verification error codes, transport response bodies) goes
to the server log only and is never echoed to the client.

Usage:
    # In main.py
    from app.core.errors import register_exception_handlers
    register_exception_handlers(app)
=============================================================================
"""

import logging
import math
import time
import traceback
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


class ContactError(Exception):
    """Base class for every server-side failure of the contact pipeline."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str = "Failed to send message. Please try again later."

    def __init__(self, detail: Optional[str] = None, public_message: Optional[str] = None):
        super().__init__(detail or self.public_message)
        self.detail = detail
        if public_message is not None:
            self.public_message = public_message

    def headers(self) -> Dict[str, str]:
        return {}


class InvalidJson(ContactError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid JSON payload"


class InvalidPayload(ContactError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid form data"

    def __init__(self, fields: Optional[list] = None):
        super().__init__(detail=f"invalid fields: {', '.join(fields or [])}")
        self.fields = fields or []


class BodyTooLarge(ContactError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    public_message = "Request body too large"


class RateLimited(ContactError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, reset_in: int):
        self.reset_in = max(0, reset_in)
        super().__init__(
            detail=f"rate limited for {self.reset_in}s",
            public_message=(
                f"Too many requests. Please try again in {self.reset_in} seconds."
            ),
        )

    def headers(self) -> Dict[str, str]:
        return {
            "Retry-After": str(self.reset_in),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(math.ceil(time.time()) + self.reset_in),
        }


class MissingVerificationToken(ContactError):
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Missing verification token"


class VerificationFailed(ContactError):
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Human verification failed. Please try again."


class VerificationServiceUnavailable(ContactError):
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Verification service unavailable"


class ServerMisconfigured(ContactError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Server configuration error"


class DeliveryFailed(ContactError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Failed to send message. Please try again later."


def _cors_headers(request: Request) -> Dict[str, str]:
    gate = getattr(request.app.state, "origin_gate", None)
    if gate is None:
        return {}
    return gate.cors_headers(request)


def error_response(request: Request, exc: ContactError) -> JSONResponse:
    """Render a taxonomy member with CORS headers attached."""
    headers = {**_cors_headers(request), **exc.headers()}
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.public_message},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(ContactError)
    async def contact_error_handler(request: Request, exc: ContactError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Contact request rejected status=%s error=%s detail=%s",
            exc.status_code,
            type(exc).__name__,
            exc.detail,
            extra={
                "event_type": "contact_rejected",
                "error": type(exc).__name__,
                "status_code": exc.status_code,
            },
        )
        return error_response(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all handler for unhandled exceptions.

        - Logs the full traceback for debugging
        - Returns a generic error message to prevent info leakage
        - In debug mode, includes more details
        """
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}:\n"
            f"{traceback.format_exc()}"
        )

        content = {
            "success": False,
            "message": "An unexpected error occurred. Please try again later.",
        }
        app_settings = getattr(request.app.state, "settings", settings)
        if app_settings.DEBUG:
            content["error_type"] = type(exc).__name__
            content["detail"] = str(exc)

        return JSONResponse(
            status_code=500, content=content, headers=_cors_headers(request)
        )
