"""
Cloudflare Turnstile verification.

Verifies tokens produced by the client-side challenge against the siteverify
API. Provider error codes are logged server-side only; callers receive one
of a small set of normalized outcomes.

Documentation: https://developers.cloudflare.com/turnstile/
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
DEFAULT_TIMEOUT_SECONDS = 10.0

MSG_MISSING_TOKEN = "Missing verification token"
MSG_MISCONFIGURED = "Server configuration error"
MSG_FAILED = "Human verification failed. Please try again."
MSG_UNAVAILABLE = "Verification service unavailable"


class VerificationReason(str, Enum):
    OK = "ok"
    MISSING_TOKEN = "missing_token"
    MISCONFIGURED = "misconfigured"
    FAILED = "failed"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    reason: VerificationReason
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "VerificationResult":
        return cls(success=True, reason=VerificationReason.OK)

    @classmethod
    def fail(cls, reason: VerificationReason, error: str) -> "VerificationResult":
        return cls(success=False, reason=reason, error=error)


class TurnstileVerifier:
    """
    Service for verifying Cloudflare Turnstile tokens.

    Usage:
        verifier = TurnstileVerifier()
        result = await verifier.verify(token, "203.0.113.7", secret)
    """

    def __init__(
        self,
        verify_url: str = DEFAULT_VERIFY_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.verify_url = verify_url
        self.timeout = timeout
        self._transport = transport

    async def verify(
        self, token: Optional[str], client_ip: str, secret: Optional[str]
    ) -> VerificationResult:
        if not token:
            return VerificationResult.fail(VerificationReason.MISSING_TOKEN, MSG_MISSING_TOKEN)

        if not secret:
            logger.error(
                "TURNSTILE_SECRET_KEY not configured",
                extra={"event_type": "verification_misconfigured"},
            )
            return VerificationResult.fail(VerificationReason.MISCONFIGURED, MSG_MISCONFIGURED)

        form = {"secret": secret, "response": token}
        if client_ip and client_ip != "unknown":
            form["remoteip"] = client_ip

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.verify_url, data=form)
            response.raise_for_status()
            result = response.json()
        except httpx.TimeoutException:
            logger.error("Turnstile verification timeout")
            return VerificationResult.fail(VerificationReason.UNAVAILABLE, MSG_UNAVAILABLE)
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Turnstile API returned status %s", exc.response.status_code
            )
            return VerificationResult.fail(VerificationReason.UNAVAILABLE, MSG_UNAVAILABLE)
        except httpx.HTTPError as exc:
            logger.error("Turnstile verification network error: %s", exc)
            return VerificationResult.fail(VerificationReason.UNAVAILABLE, MSG_UNAVAILABLE)
        except ValueError:
            logger.error("Turnstile response is not valid json")
            return VerificationResult.fail(VerificationReason.UNAVAILABLE, MSG_UNAVAILABLE)

        if not isinstance(result, dict):
            logger.error("Turnstile response has unexpected shape")
            return VerificationResult.fail(VerificationReason.UNAVAILABLE, MSG_UNAVAILABLE)

        if result.get("success") is True:
            return VerificationResult.ok()

        error_codes = result.get("error-codes", [])
        logger.warning(
            "Turnstile verification failed: %s",
            error_codes,
            extra={"event_type": "verification_failed"},
        )
        return VerificationResult.fail(VerificationReason.FAILED, MSG_FAILED)
