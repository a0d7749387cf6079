"""Templated email provider API (EmailJS REST)."""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from app.services.delivery.base import DeliveryChannel, RenderedMessage, post_json


class ProviderApiChannel(DeliveryChannel):
    name = "provider"

    def __init__(
        self,
        api_url: str,
        service_id: str,
        template_id: str,
        public_key: str,
        private_key: Optional[str] = None,
        to_email: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.private_key = private_key
        self.to_email = to_email
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, message: RenderedMessage) -> Dict[str, Any]:
        params = {
            "reference_id": message.reference_id,
            "from_name": message.name,
            "from_email": message.email,
            "reply_to": message.reply_to,
            "subject": message.subject,
            "message": message.message,
            "client_ip": message.client_ip,
            "submitted_at": message.submitted_at.isoformat(),
        }
        if self.to_email:
            params["to_email"] = self.to_email

        payload: Dict[str, Any] = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": params,
        }
        if self.private_key:
            payload["accessToken"] = self.private_key
        return payload

    async def send(self, message: RenderedMessage) -> None:
        await post_json(
            self.api_url,
            self.build_payload(message),
            timeout=self.timeout,
            transport=self._transport,
            channel=self.name,
        )
