"""
Transactional mail API with per-domain DKIM signing (MailChannels).

The sending domain must be locked down in DNS for the API to accept the
request; the DKIM credentials travel inside the personalization block.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from app.services.delivery.base import DeliveryChannel, RenderedMessage, post_json


class SignedApiChannel(DeliveryChannel):
    name = "signed_api"

    def __init__(
        self,
        api_url: str,
        to_email: str,
        from_email: str,
        dkim_domain: str,
        dkim_private_key: str,
        dkim_selector: str = "mailchannels",
        from_name: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.to_email = to_email
        self.from_email = from_email
        self.from_name = from_name
        self.dkim_domain = dkim_domain
        self.dkim_selector = dkim_selector
        self.dkim_private_key = dkim_private_key
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, message: RenderedMessage) -> Dict[str, Any]:
        sender: Dict[str, str] = {"email": self.from_email}
        if self.from_name:
            sender["name"] = self.from_name
        return {
            "personalizations": [
                {
                    "to": [{"email": self.to_email}],
                    "dkim_domain": self.dkim_domain,
                    "dkim_selector": self.dkim_selector,
                    "dkim_private_key": self.dkim_private_key,
                }
            ],
            "from": sender,
            "reply_to": {"email": message.reply_to, "name": message.name},
            "subject": message.subject,
            "content": [
                {"type": "text/plain", "value": message.text},
                {"type": "text/html", "value": message.html},
            ],
        }

    async def send(self, message: RenderedMessage) -> None:
        headers = {"X-Api-Key": self.api_key} if self.api_key else None
        await post_json(
            self.api_url,
            self.build_payload(message),
            timeout=self.timeout,
            headers=headers,
            transport=self._transport,
            channel=self.name,
        )
