"""Cheap structural checks that run before any external call.

A declared ``Content-Length`` over the limit is rejected before reading,
and the body itself is read with a running byte count. Validation is pure
and logs lengths and booleans, never field contents.
"""
import json
import logging
from typing import Any, Optional, Union

from pydantic import ValidationError
from starlette.requests import Request

from app.core.errors import BodyTooLarge, InvalidJson, InvalidPayload
from app.schemas.contact import ContactPayload

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 32 * 1024


def too_large_message(max_bytes: int) -> str:
    return f"Request body too large. Maximum size is {max_bytes // 1024}KB"


def check_body_size(request: Request, max_bytes: int = MAX_BODY_SIZE) -> Optional[str]:
    """Return an error message when the declared body exceeds max_bytes."""
    content_length = request.headers.get("Content-Length")
    if not content_length:
        return None
    try:
        size = int(content_length)
    except ValueError:
        return None
    if size > max_bytes:
        return too_large_message(max_bytes)
    return None


async def read_body(request: Request, max_bytes: int = MAX_BODY_SIZE) -> bytes:
    """Read the body, stopping as soon as it grows past max_bytes.

    Covers chunked uploads that never declared a Content-Length.
    """
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes:
            message = too_large_message(max_bytes)
            raise BodyTooLarge(detail="streamed body exceeded limit", public_message=message)
        chunks.append(chunk)
    return b"".join(chunks)


def _describe(data: Any) -> dict:
    if not isinstance(data, dict):
        return {"is_object": False}
    return {
        "is_object": True,
        "name_len": len(data["name"]) if isinstance(data.get("name"), str) else None,
        "email_len": len(data["email"]) if isinstance(data.get("email"), str) else None,
        "message_len": len(data["message"]) if isinstance(data.get("message"), str) else None,
        "has_token": bool(data.get("turnstileToken")),
    }


def parse_and_validate(raw_body: Union[bytes, str]) -> ContactPayload:
    """Parse JSON and validate it into a ContactPayload.

    Raises:
        InvalidJson: body is not JSON
        InvalidPayload: wrong shape, type, blank field or length violation
    """
    try:
        data = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidJson(detail=f"json decode error at pos {getattr(exc, 'pos', '?')}") from exc

    if not isinstance(data, dict):
        logger.info("Contact payload rejected", extra={"event_type": "payload_invalid", **_describe(data)})
        raise InvalidPayload(fields=["<root>"])

    try:
        return ContactPayload.model_validate(data)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        logger.info(
            "Contact payload rejected fields=%s",
            ",".join(fields),
            extra={"event_type": "payload_invalid", **_describe(data)},
        )
        raise InvalidPayload(fields=fields) from None
