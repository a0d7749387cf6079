"""
=============================================================================
CONTACTGATE - RATE LIMITER MODULE
=============================================================================
Fixed-window rate limiting for the contact endpoint, keyed by client address.

Features:
- Pluggable store contract (get/put with TTL)
- In-memory store with opportunistic sweeping of expired entries
- Redis store for multi-instance deployments (eventually consistent)
- Automatic fallback to in-memory when Redis is unavailable
- Trusted-proxy validation for X-Forwarded-For / CF-Connecting-IP

Usage:
    store = build_rate_limit_store(settings.RATE_LIMIT_REDIS_URL)
    limiter = FixedWindowRateLimiter(store, max_requests=5, window_seconds=60)
    decision = limiter.hit(get_client_ip(request))
=============================================================================
"""

import ipaddress
import json
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Callable, Dict, List, Optional, Sequence

from fastapi import Request

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate:contact:"
REDIS_TIMEOUT_SECONDS = 2
MEMORY_SWEEP_THRESHOLD = 1000


@dataclass(frozen=True)
class RateLimitEntry:
    """Counter for one key inside one window. ``expires_at`` is epoch milliseconds."""

    count: int
    expires_at: int


@dataclass(frozen=True)
class RateLimitDecision:
    limited: bool
    remaining: int
    reset_in: int


# =============================================================================
# STORE ABSTRACTION
# =============================================================================


class RateLimitStore(ABC):
    """Abstract rate-limit storage backend."""

    name: str = "abstract"

    @abstractmethod
    def get(self, key: str) -> Optional[RateLimitEntry]:
        """Return the live entry for key, or None if absent/expired."""

    @abstractmethod
    def put(self, key: str, entry: RateLimitEntry, ttl_seconds: int) -> None:
        """Store entry; the backend may drop it after ttl_seconds."""

    @abstractmethod
    def reset(self) -> None:
        """Clear all state (for tests)."""

    @abstractmethod
    def stats(self) -> dict:
        """Return debugging stats."""


class InMemoryRateLimitStore(RateLimitStore):
    """Thread-safe process-local store (not shared across instances)."""

    name = "in_memory"

    def __init__(
        self,
        sweep_threshold: int = MEMORY_SWEEP_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lock = Lock()
        self._entries: Dict[str, RateLimitEntry] = {}
        self._sweep_threshold = sweep_threshold
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._now_ms() > entry.expires_at:
                del self._entries[key]
                return None
            return entry

    def put(self, key: str, entry: RateLimitEntry, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = entry
            if len(self._entries) > self._sweep_threshold:
                self._sweep()

    def _sweep(self) -> None:
        now = self._now_ms()
        expired = [k for k, v in self._entries.items() if now > v.expires_at]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Rate limit sweep removed %d expired keys", len(expired))

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        return {"backend": self.name, "tracked_keys": len(self._entries)}


class RedisRateLimitStore(RateLimitStore):
    """Redis-backed store; entries carry an explicit TTL."""

    name = "redis"

    def __init__(self, redis_client) -> None:  # type: ignore[type-arg]
        self._redis = redis_client

    def get(self, key: str) -> Optional[RateLimitEntry]:
        raw = self._redis.get(key)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return RateLimitEntry(count=int(data["count"]), expires_at=int(data["expires_at"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding malformed rate limit entry")
            return None

    def put(self, key: str, entry: RateLimitEntry, ttl_seconds: int) -> None:
        self._redis.setex(key, max(1, int(ttl_seconds)), json.dumps(asdict(entry)))

    def reset(self) -> None:
        cursor = 0
        while True:
            cursor, keys = self._redis.scan(cursor, match=f"{KEY_PREFIX}*", count=500)
            if keys:
                self._redis.delete(*keys)
            if cursor == 0:
                break

    def stats(self) -> dict:
        tracked = 0
        cursor = 0
        while True:
            cursor, keys = self._redis.scan(cursor, match=f"{KEY_PREFIX}*", count=500)
            tracked += len(keys)
            if cursor == 0:
                break
        return {"backend": self.name, "tracked_keys": tracked}


def build_rate_limit_store(redis_url: Optional[str]) -> RateLimitStore:
    """Use Redis when configured and reachable, else the in-memory store."""
    if not redis_url:
        logger.info("Rate limiter using in-memory store (no RATE_LIMIT_REDIS_URL)")
        return InMemoryRateLimitStore()
    try:
        import redis as _redis_lib

        client = _redis_lib.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=REDIS_TIMEOUT_SECONDS,
            socket_timeout=REDIS_TIMEOUT_SECONDS,
        )
        client.ping()
        logger.info("Rate limiter using Redis store")
        return RedisRateLimitStore(client)
    except Exception as exc:
        logger.warning(
            "Redis unavailable for rate limiter, using in-memory fallback: %s", exc
        )
        return InMemoryRateLimitStore()


# =============================================================================
# FIXED WINDOW
# =============================================================================


class FixedWindowRateLimiter:
    """Allow ``max_requests`` per key per ``window_seconds`` fixed window."""

    def __init__(
        self,
        store: RateLimitStore,
        max_requests: int = 5,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    def hit(self, client_ip: str) -> RateLimitDecision:
        """Count one request for client_ip and decide whether it is allowed."""
        key = f"{KEY_PREFIX}{client_ip}"
        now = int(self._clock() * 1000)

        entry = self.store.get(key)
        if entry is not None and now > entry.expires_at:
            entry = None

        if entry is None:
            self.store.put(
                key,
                RateLimitEntry(count=1, expires_at=now + self.window_seconds * 1000),
                self.window_seconds,
            )
            return RateLimitDecision(
                limited=False,
                remaining=self.max_requests - 1,
                reset_in=self.window_seconds,
            )

        reset_in = max(0, math.ceil((entry.expires_at - now) / 1000))

        if entry.count >= self.max_requests:
            return RateLimitDecision(limited=True, remaining=0, reset_in=reset_in)

        self.store.put(
            key,
            RateLimitEntry(count=entry.count + 1, expires_at=entry.expires_at),
            max(1, reset_in),
        )
        return RateLimitDecision(
            limited=False,
            remaining=self.max_requests - entry.count - 1,
            reset_in=reset_in,
        )


# =============================================================================
# IP EXTRACTION
# =============================================================================


def parse_trusted_networks(
    entries: Sequence[str],
) -> List[ipaddress.IPv4Network | ipaddress.IPv6Network]:
    nets = []
    for entry in entries:
        try:
            nets.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning("Invalid TRUSTED_PROXIES entry ignored: %s", entry)
    return nets


def _is_trusted(ip_str: str, networks) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in net for net in networks)


def get_client_ip(request: Request, trusted_networks=()) -> str:
    """Extract client IP, trusting forwarding headers only from trusted proxies."""
    direct_ip = request.client.host if request.client else "unknown"
    if not _is_trusted(direct_ip, trusted_networks):
        return direct_ip

    connecting_ip = request.headers.get("CF-Connecting-IP")
    if connecting_ip:
        return connecting_ip.strip()

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        parts = [p.strip() for p in forwarded.split(",") if p.strip()]
        # Rightmost untrusted hop is the real client
        for ip in reversed(parts):
            if not _is_trusted(ip, trusted_networks):
                return ip
        if parts:
            return parts[0]

    return direct_ip
