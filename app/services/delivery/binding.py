"""Delivery through a bound send capability.

The channel does not know how mail leaves the process: it is handed an
object exposing ``async send(OutboundEmail)``. The default binding speaks
SMTP; deployments on a platform with a native mail binding inject their own.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional, Protocol

from app.core.email import SmtpConfig, send_email
from app.services.delivery.base import DeliveryChannel, DeliveryError, RenderedMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundEmail:
    from_addr: str
    to_addr: str
    subject: str
    text: str
    html: Optional[str] = None
    reply_to: Optional[str] = None
    from_name: Optional[str] = None


class SendBinding(Protocol):
    async def send(self, email: OutboundEmail) -> None:
        ...


class SmtpSendBinding:
    """SendBinding backed by an SMTP relay."""

    def __init__(self, config: SmtpConfig):
        self.config = config

    @staticmethod
    def build_message(email: OutboundEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((email.from_name, email.from_addr)) if email.from_name else email.from_addr
        msg["To"] = email.to_addr
        msg["Subject"] = email.subject
        if email.reply_to:
            msg["Reply-To"] = email.reply_to
        msg.set_content(email.text)
        if email.html:
            msg.add_alternative(email.html, subtype="html")
        return msg

    async def send(self, email: OutboundEmail) -> None:
        await send_email(self.build_message(email), self.config)


class BindingChannel(DeliveryChannel):
    name = "binding"

    def __init__(
        self,
        binding: SendBinding,
        from_addr: str,
        to_addr: str,
        from_name: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.binding = binding
        self.from_addr = from_addr
        self.to_addr = to_addr
        self.from_name = from_name
        self.timeout = timeout

    async def send(self, message: RenderedMessage) -> None:
        outbound = OutboundEmail(
            from_addr=self.from_addr,
            to_addr=self.to_addr,
            subject=message.subject,
            text=message.text,
            html=message.html,
            reply_to=message.reply_to,
            from_name=self.from_name,
        )
        try:
            await asyncio.wait_for(self.binding.send(outbound), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Send binding timed out after %ss", self.timeout)
            raise DeliveryError("send binding timed out") from exc
        except Exception as exc:
            logger.error("Send binding failed: %s", type(exc).__name__)
            raise DeliveryError(f"send binding failed: {type(exc).__name__}") from exc
