from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int = 587
    user: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 10.0


def _send_email_sync(message: EmailMessage, config: SmtpConfig) -> None:
    with smtplib.SMTP(config.host, config.port, timeout=config.timeout) as server:
        server.starttls()
        if config.user and config.password:
            server.login(config.user, config.password)
        server.send_message(message)


async def send_email(message: EmailMessage, config: SmtpConfig) -> None:
    """Send one message over SMTP without blocking the event loop.

    A single attempt is made; failures propagate to the caller.
    """
    if not config.host:
        raise RuntimeError("SMTP_HOST is not configured")
    await asyncio.wait_for(
        asyncio.to_thread(_send_email_sync, message, config),
        timeout=config.timeout,
    )
