from __future__ import annotations

import logging
from typing import Optional, Union

from app.core.config import Settings
from app.core.errors import (
    DeliveryFailed,
    MissingVerificationToken,
    RateLimited,
    ServerMisconfigured,
    VerificationFailed,
    VerificationServiceUnavailable,
)
from app.core.rate_limiter import FixedWindowRateLimiter, RateLimitDecision
from app.core.request_guard import parse_and_validate
from app.core.sanitizer import mask_email
from app.schemas.contact import ContactPayload
from app.services.delivery import DeliveryChannel, DeliveryError, render_contact_message
from app.services.reference_id import issue_reference_id
from app.services.verification_service import (
    TurnstileVerifier,
    VerificationReason,
    VerificationResult,
)

logger = logging.getLogger(__name__)

_VERIFICATION_ERRORS = {
    VerificationReason.MISSING_TOKEN: MissingVerificationToken,
    VerificationReason.FAILED: VerificationFailed,
    VerificationReason.UNAVAILABLE: VerificationServiceUnavailable,
    VerificationReason.MISCONFIGURED: ServerMisconfigured,
}


class ContactService:
    """Runs one contact submission through the gate and hands it to a channel.

    The HTTP layer owns the size check and CORS headers; everything from the
    configuration check to delivery happens here, in that order.
    """

    def __init__(
        self,
        settings: Settings,
        limiter: FixedWindowRateLimiter,
        verifier: TurnstileVerifier,
        channel: Optional[DeliveryChannel],
        channel_error: Optional[str] = None,
    ):
        self.settings = settings
        self.limiter = limiter
        self.verifier = verifier
        self.channel = channel
        self.channel_error = channel_error

    def check_configuration(self) -> None:
        missing = []
        if not self.settings.secret("TURNSTILE_SECRET_KEY"):
            missing.append("TURNSTILE_SECRET_KEY")
        if self.channel is None:
            missing.append(self.channel_error or "DELIVERY_CHANNEL")
        if missing:
            logger.error(
                "Contact endpoint misconfigured: %s",
                "; ".join(missing),
                extra={"event_type": "contact_misconfigured"},
            )
            raise ServerMisconfigured(detail="; ".join(missing))

    def enforce_rate_limit(self, client_ip: str) -> RateLimitDecision:
        decision = self.limiter.hit(client_ip)
        if decision.limited:
            logger.warning(
                "Rate limit exceeded reset_in=%ss",
                decision.reset_in,
                extra={"event_type": "rate_limited", "reset_in": decision.reset_in},
            )
            raise RateLimited(decision.reset_in)
        return decision

    async def verify(self, payload: ContactPayload, client_ip: str) -> None:
        result: VerificationResult = await self.verifier.verify(
            payload.turnstile_token,
            client_ip,
            self.settings.secret("TURNSTILE_SECRET_KEY"),
        )
        if result.success:
            return
        raise _VERIFICATION_ERRORS[result.reason](detail=result.reason.value)

    async def deliver(self, payload: ContactPayload, client_ip: str) -> str:
        reference_id = issue_reference_id(self.settings.REFERENCE_ID_PREFIX)
        message = render_contact_message(
            payload,
            reference_id=reference_id,
            client_ip=client_ip,
            site_name=self.settings.SITE_NAME,
            style=self.settings.EMAIL_TEMPLATE_STYLE,
        )
        try:
            await self.channel.send(message)
        except DeliveryError as exc:
            logger.error(
                "Contact delivery failed ref=%s channel=%s error=%s",
                reference_id,
                self.channel.name,
                exc,
                extra={
                    "event_type": "contact_delivery_failed",
                    "reference_id": reference_id,
                    "channel": self.channel.name,
                },
            )
            raise DeliveryFailed(detail=str(exc)) from exc
        return reference_id

    async def handle(self, raw_body: Union[bytes, str], client_ip: str) -> str:
        """Process a submission whose body size has already been checked.

        Returns the reference id of the delivered message.
        """
        self.check_configuration()
        self.enforce_rate_limit(client_ip)
        payload = parse_and_validate(raw_body)
        await self.verify(payload, client_ip)
        reference_id = await self.deliver(payload, client_ip)

        logger.info(
            "AUDIT: Contact message delivered ref=%s from=%s channel=%s",
            reference_id,
            mask_email(payload.email),
            self.channel.name,
            extra={
                "event_type": "contact_delivered",
                "reference_id": reference_id,
                "channel": self.channel.name,
                "message_len": len(payload.message),
            },
        )
        return reference_id
