"""
Per-tab persistence of a pending contact submission.

The form page writes an envelope, the verification page reads it back. The
envelope never contains the verification token and expires after 15
minutes; an expired or unreadable envelope is removed on load.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

PENDING_CONTACT_KEY = "contact:pending-submission"
PENDING_CONTACT_TTL_SECONDS = 15 * 60


class StorageError(Exception):
    """The session store refused a write."""


class SessionStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class InMemorySessionStorage:
    """Dict-backed SessionStorage, scoped to one machine instance."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


@dataclass(frozen=True)
class PendingContact:
    name: str
    email: str
    message: str


class PendingContactStore:
    def __init__(
        self,
        storage: Optional[SessionStorage] = None,
        ttl_seconds: int = PENDING_CONTACT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        key: str = PENDING_CONTACT_KEY,
    ):
        self.storage = storage if storage is not None else InMemorySessionStorage()
        self.ttl_ms = ttl_seconds * 1000
        self.key = key
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def save(self, pending: PendingContact) -> None:
        envelope = {
            "name": pending.name,
            "email": pending.email,
            "message": pending.message,
            "createdAt": self._now_ms(),
        }
        try:
            self.storage.set_item(self.key, json.dumps(envelope))
        except Exception as exc:
            logger.warning("Failed to save pending contact: %s", type(exc).__name__)
            raise StorageError("could not persist pending submission") from exc

    def load(self) -> Optional[PendingContact]:
        """Return the pending submission, or None when absent, expired or corrupt."""
        raw = self.storage.get_item(self.key)
        if not raw:
            return None

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable pending contact")
            self.clear()
            return None
        if not isinstance(data, dict):
            self.clear()
            return None

        created_at = data.get("createdAt")
        if not isinstance(created_at, (int, float)) or isinstance(created_at, bool):
            created_at = 0
        if not created_at or self._now_ms() - created_at > self.ttl_ms:
            self.clear()
            return None

        name, email, message = data.get("name"), data.get("email"), data.get("message")
        if not all(isinstance(v, str) and v for v in (name, email, message)):
            self.clear()
            return None
        return PendingContact(name=name, email=email, message=message)

    def clear(self) -> None:
        try:
            self.storage.remove_item(self.key)
        except Exception as exc:
            logger.warning("Failed to clear pending contact: %s", type(exc).__name__)
