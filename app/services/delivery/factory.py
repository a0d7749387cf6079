"""Select the single delivery channel for this deployment."""
from __future__ import annotations

import logging
from typing import List, Optional

from app.core.config import Settings
from app.core.email import SmtpConfig
from app.core.errors import ServerMisconfigured
from app.services.delivery.base import DeliveryChannel
from app.services.delivery.binding import BindingChannel, SendBinding, SmtpSendBinding
from app.services.delivery.provider import ProviderApiChannel
from app.services.delivery.signed_api import SignedApiChannel
from app.services.delivery.webhook import WebhookChannel

logger = logging.getLogger(__name__)


def _value(settings: Settings, name: str) -> Optional[str]:
    return settings.secret(name)


def _require(settings: Settings, names: List[str]) -> None:
    missing = [name for name in names if not _value(settings, name)]
    if missing:
        logger.error(
            "Delivery channel %s is missing settings: %s",
            settings.DELIVERY_CHANNEL,
            ", ".join(missing),
            extra={"event_type": "delivery_misconfigured"},
        )
        raise ServerMisconfigured(detail=f"missing settings: {', '.join(missing)}")


def build_delivery_channel(
    settings: Settings, binding: Optional[SendBinding] = None
) -> DeliveryChannel:
    """
    Build the channel named by ``DELIVERY_CHANNEL``.

    Raises ServerMisconfigured naming every missing setting. There is no
    fallback to another channel.
    """
    kind = settings.DELIVERY_CHANNEL
    timeout = settings.DELIVERY_TIMEOUT_SECONDS

    if kind == "webhook":
        _require(settings, ["DISCORD_WEBHOOK_URL"])
        return WebhookChannel(
            webhook_url=_value(settings, "DISCORD_WEBHOOK_URL"),
            username=settings.DISCORD_USERNAME,
            avatar_url=settings.DISCORD_AVATAR_URL or f"{settings.APP_ORIGIN}/favicon.ico",
            timeout=timeout,
        )

    if kind == "binding":
        required = ["CONTACT_TO_EMAIL", "CONTACT_FROM_EMAIL"]
        if binding is None:
            required.append("SMTP_HOST")
        _require(settings, required)
        if binding is None:
            binding = SmtpSendBinding(
                SmtpConfig(
                    host=settings.SMTP_HOST,
                    port=settings.SMTP_PORT,
                    user=settings.SMTP_USER,
                    password=_value(settings, "SMTP_PASSWORD"),
                    timeout=timeout,
                )
            )
        return BindingChannel(
            binding,
            from_addr=settings.CONTACT_FROM_EMAIL,
            to_addr=settings.CONTACT_TO_EMAIL,
            from_name=settings.CONTACT_FROM_NAME,
            timeout=timeout,
        )

    if kind == "provider":
        _require(
            settings,
            ["EMAILJS_SERVICE_ID", "EMAILJS_TEMPLATE_ID", "EMAILJS_PUBLIC_KEY"],
        )
        return ProviderApiChannel(
            api_url=settings.EMAILJS_API_URL,
            service_id=settings.EMAILJS_SERVICE_ID,
            template_id=settings.EMAILJS_TEMPLATE_ID,
            public_key=settings.EMAILJS_PUBLIC_KEY,
            private_key=_value(settings, "EMAILJS_PRIVATE_KEY"),
            to_email=settings.CONTACT_TO_EMAIL,
            timeout=timeout,
        )

    if kind == "signed_api":
        _require(
            settings,
            ["CONTACT_TO_EMAIL", "CONTACT_FROM_EMAIL", "DKIM_DOMAIN", "DKIM_PRIVATE_KEY"],
        )
        return SignedApiChannel(
            api_url=settings.MAILCHANNELS_API_URL,
            to_email=settings.CONTACT_TO_EMAIL,
            from_email=settings.CONTACT_FROM_EMAIL,
            from_name=settings.CONTACT_FROM_NAME,
            dkim_domain=settings.DKIM_DOMAIN,
            dkim_selector=settings.DKIM_SELECTOR,
            dkim_private_key=_value(settings, "DKIM_PRIVATE_KEY"),
            api_key=_value(settings, "MAILCHANNELS_API_KEY"),
            timeout=timeout,
        )

    raise ServerMisconfigured(detail=f"unknown delivery channel: {kind}")
