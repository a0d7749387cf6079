from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised by a channel when the message could not be handed off."""


@dataclass(frozen=True)
class RenderedMessage:
    """A contact submission rendered once and shared by every channel."""

    reference_id: str
    name: str
    email: str
    message: str
    client_ip: str
    submitted_at: datetime
    subject: str
    text: str
    html: str

    @property
    def reply_to(self) -> str:
        return self.email


class DeliveryChannel(ABC):
    """Transport for a rendered contact message."""

    name: str = "abstract"

    @abstractmethod
    async def send(self, message: RenderedMessage) -> None:
        """Deliver message or raise DeliveryError."""


async def post_json(
    url: str,
    payload: Dict[str, Any],
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    channel: str = "http",
) -> httpx.Response:
    """POST a JSON body once; any failure becomes DeliveryError."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as exc:
        logger.error("%s delivery timed out", channel)
        raise DeliveryError(f"{channel} timed out") from exc
    except httpx.HTTPError as exc:
        logger.error("%s delivery network error: %s", channel, type(exc).__name__)
        raise DeliveryError(f"{channel} network error") from exc

    if not response.is_success:
        logger.error(
            "%s delivery rejected with status %s",
            channel,
            response.status_code,
            extra={"event_type": "delivery_rejected", "status_code": response.status_code},
        )
        raise DeliveryError(f"{channel} returned {response.status_code}")
    return response
