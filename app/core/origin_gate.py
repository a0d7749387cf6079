"""CORS allowlist for the contact endpoint.

Origins are matched against exact strings and regex rules (preview
deployments). A rejected origin is never an error: responses fall back to
the default application origin so the browser simply refuses to read them.
"""
import logging
import re
from typing import Dict, Iterable, List, Optional, Pattern, Sequence

from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("POST", "OPTIONS")
DEFAULT_ALLOWED_HEADERS = ("Content-Type", "X-Requested-With")


class OriginGate:
    """Match request origins against an ordered allowlist."""

    def __init__(
        self,
        exact_origins: Iterable[str],
        patterns: Iterable[str] = (),
        default_origin: Optional[str] = None,
        allowed_headers: Sequence[str] = DEFAULT_ALLOWED_HEADERS,
    ) -> None:
        self.exact_origins: List[str] = [o.strip() for o in exact_origins if o and o.strip()]
        self._exact_lookup = {o.lower() for o in self.exact_origins}
        self.patterns: List[Pattern[str]] = [re.compile(p, re.IGNORECASE) for p in patterns]
        fallback = default_origin or (self.exact_origins[0] if self.exact_origins else "")
        if not fallback:
            raise ValueError("OriginGate needs a default origin")
        self.default_origin = fallback
        self.allowed_headers = ", ".join(allowed_headers)

    @classmethod
    def from_settings(cls, settings) -> "OriginGate":
        return cls(
            exact_origins=settings.ALLOWED_ORIGINS,
            patterns=settings.ALLOWED_ORIGIN_PATTERNS,
            default_origin=settings.APP_ORIGIN,
            allowed_headers=settings.ALLOWED_HEADERS,
        )

    def is_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return False
        candidate = origin.strip()
        if candidate.lower() in self._exact_lookup:
            return True
        return any(p.match(candidate) for p in self.patterns)

    def cors_headers(self, request: Request) -> Dict[str, str]:
        origin = request.headers.get("Origin")
        allowed = self.is_allowed(origin)
        if origin and not allowed:
            logger.debug("Origin not in allowlist, using default origin")
        return {
            "Access-Control-Allow-Origin": origin.strip() if allowed else self.default_origin,
            "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
            "Access-Control-Allow-Headers": self.allowed_headers,
            "Vary": "Origin",
        }

    def preflight_response(self, request: Request) -> Response:
        return Response(status_code=204, headers=self.cors_headers(request))
