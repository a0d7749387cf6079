"""Chat webhook delivery (Discord embed format)."""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from app.services.delivery.base import DeliveryChannel, RenderedMessage, post_json

EMBED_MESSAGE_LIMIT = 1000
EMBED_COLOR = 0x00FF00


def truncate_message(text: str, limit: int = EMBED_MESSAGE_LIMIT) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


class WebhookChannel(DeliveryChannel):
    name = "webhook"

    def __init__(
        self,
        webhook_url: str,
        username: str = "Contact Form",
        avatar_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.username = username
        self.avatar_url = avatar_url
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, message: RenderedMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "username": self.username,
            "embeds": [
                {
                    "title": "New Contact Form Submission",
                    "color": EMBED_COLOR,
                    "fields": [
                        {"name": "Reference ID", "value": f"`{message.reference_id}`", "inline": True},
                        {"name": "Name", "value": message.name, "inline": True},
                        {"name": "Email", "value": message.email, "inline": True},
                        {"name": "Message", "value": truncate_message(message.message), "inline": False},
                    ],
                    "footer": {"text": f"IP: {message.client_ip}"},
                    "timestamp": message.submitted_at.isoformat(),
                }
            ],
        }
        if self.avatar_url:
            payload["avatar_url"] = self.avatar_url
        return payload

    async def send(self, message: RenderedMessage) -> None:
        await post_json(
            self.webhook_url,
            self.build_payload(message),
            timeout=self.timeout,
            transport=self._transport,
            channel=self.name,
        )
