from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINT = "/api/contact"
DEFAULT_TIMEOUT_MS = 15000


def normalize_endpoint(raw: Any) -> str:
    """Blank means unconfigured; a bare host becomes ``https://host``."""
    if not isinstance(raw, str):
        return ""
    value = raw.strip()
    if not value:
        return ""
    if value.startswith("http") or value.startswith("/"):
        return value
    return f"https://{value}"


class ContactClientSettings(BaseSettings):
    CONTACT_ENDPOINT: str = DEFAULT_ENDPOINT
    # Base URL used to resolve a relative CONTACT_ENDPOINT outside a browser
    CONTACT_BASE_URL: Optional[str] = None
    CONTACT_TIMEOUT_MS: int = DEFAULT_TIMEOUT_MS
    CONTACT_SUPPORT_EMAIL: str = "contact@example.com"
    CONTACT_AUTO_SEND: bool = False

    # End-to-end runs only: skips the interactive challenge
    TURNSTILE_BYPASS_TOKEN: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )

    @field_validator("CONTACT_ENDPOINT", mode="before")
    @classmethod
    def normalize_contact_endpoint(cls, v: Any) -> str:
        return normalize_endpoint(v)

    @field_validator("CONTACT_TIMEOUT_MS", mode="before")
    @classmethod
    def parse_timeout(cls, v: Any) -> int:
        try:
            return int(str(v).strip())
        except (TypeError, ValueError):
            return DEFAULT_TIMEOUT_MS

    @field_validator("TURNSTILE_BYPASS_TOKEN", mode="after")
    @classmethod
    def blank_bypass_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def is_endpoint_configured(self) -> bool:
        return len(self.CONTACT_ENDPOINT) > 0

    @property
    def timeout_seconds(self) -> Optional[float]:
        """None disables the client-side timeout."""
        if self.CONTACT_TIMEOUT_MS <= 0:
            return None
        return self.CONTACT_TIMEOUT_MS / 1000
