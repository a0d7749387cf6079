from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from app.client.config import ContactClientSettings

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "X-Requested-With": "contact-form",
}


class ContactSubmissionError(Exception):
    """The endpoint answered but did not accept the submission."""


@dataclass(frozen=True)
class ContactApiResponse:
    success: bool
    message: Optional[str] = None
    reference_id: Optional[str] = None


async def submit_contact_request(
    payload: Dict[str, Any],
    settings: ContactClientSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ContactApiResponse:
    """
    POST a contact payload to the configured endpoint.

    Raises:
        ContactSubmissionError: endpoint unconfigured, non-2xx, or ``success: false``
        httpx.TimeoutException: CONTACT_TIMEOUT_MS elapsed
        httpx.HTTPError: network failure
    """
    if not settings.is_endpoint_configured:
        raise ContactSubmissionError(
            "Contact endpoint is not configured. Please set CONTACT_ENDPOINT."
        )

    async with httpx.AsyncClient(
        base_url=settings.CONTACT_BASE_URL or "",
        timeout=settings.timeout_seconds,
        transport=transport,
    ) as client:
        response = await client.post(
            settings.CONTACT_ENDPOINT, json=payload, headers=DEFAULT_HEADERS
        )

    try:
        data = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        data = {}

    if not response.is_success or data.get("success") is False:
        message = data.get("message") or (
            f"Contact endpoint responded with {response.status_code} {response.reason_phrase}"
        )
        logger.info("Contact submission rejected status=%s", response.status_code)
        raise ContactSubmissionError(message)

    return ContactApiResponse(
        success=True,
        message=data.get("message"),
        reference_id=data.get("referenceId"),
    )
