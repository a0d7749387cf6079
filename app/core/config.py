from typing import List, Optional

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DELIVERY_CHANNELS = ("webhook", "binding", "provider", "signed_api")
TEMPLATE_STYLES = ("classic", "branded")


class Settings(BaseSettings):
    PROJECT_NAME: str = "ContactGate"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # --- Environment & Debug ---
    ENVIRONMENT: str = "local"
    DEBUG: bool = False  # Default to False for security
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # --- Site identity (used in rendered messages) ---
    SITE_NAME: str = "example.com"
    REFERENCE_ID_PREFIX: str = "MSG"

    # --- Contact routing ---
    CONTACT_TO_EMAIL: Optional[str] = None
    CONTACT_FROM_EMAIL: Optional[str] = None
    CONTACT_FROM_NAME: str = "Contact Form"

    # --- Human verification (Cloudflare Turnstile) ---
    TURNSTILE_SECRET_KEY: Optional[SecretStr] = None
    TURNSTILE_VERIFY_URL: str = (
        "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    )

    # --- Delivery ---
    DELIVERY_CHANNEL: str = "binding"
    DELIVERY_TIMEOUT_SECONDS: float = 10.0
    EMAIL_TEMPLATE_STYLE: str = "classic"

    # (a) webhook
    DISCORD_WEBHOOK_URL: Optional[SecretStr] = None
    DISCORD_USERNAME: str = "Contact Form"
    DISCORD_AVATAR_URL: Optional[str] = None

    # (b) bound send capability (SMTP)
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[SecretStr] = None

    # (c) templated provider API (EmailJS)
    EMAILJS_API_URL: str = "https://api.emailjs.com/api/v1.0/email/send"
    EMAILJS_SERVICE_ID: Optional[str] = None
    EMAILJS_TEMPLATE_ID: Optional[str] = None
    EMAILJS_PUBLIC_KEY: Optional[str] = None
    EMAILJS_PRIVATE_KEY: Optional[SecretStr] = None

    # (d) signed transactional API (MailChannels + DKIM)
    MAILCHANNELS_API_URL: str = "https://api.mailchannels.net/tx/v1/send"
    MAILCHANNELS_API_KEY: Optional[SecretStr] = None
    DKIM_DOMAIN: Optional[str] = None
    DKIM_SELECTOR: str = "mailchannels"
    DKIM_PRIVATE_KEY: Optional[SecretStr] = None

    # --- Request limits ---
    MAX_BODY_BYTES: int = 32 * 1024
    API_TIMEOUT_SECONDS: float = 10.0

    # --- Rate Limiting / Proxy ---
    RATE_LIMIT_MAX: int = 5
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_REDIS_URL: Optional[str] = None
    TRUSTED_PROXIES: List[str] = Field(
        default_factory=lambda: ["127.0.0.1", "10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"],
        description="CIDR ranges of trusted reverse proxies for X-Forwarded-For",
    )

    # --- CORS ---
    APP_ORIGIN: str = "https://example.com"
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "https://example.com",
            "https://www.example.com",
            "http://localhost:5173",
            "http://localhost:4173",
        ],
        description="Exact origins allowed to read contact responses.",
    )
    ALLOWED_ORIGIN_PATTERNS: List[str] = Field(
        default_factory=lambda: [r"^https://[a-z0-9-]+\.example-com\.pages\.dev$"],
        description="Regex rules for preview deployments.",
    )
    ALLOWED_HEADERS: List[str] = Field(
        default_factory=lambda: ["Content-Type", "X-Requested-With"],
    )

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )

    @field_validator("DELIVERY_CHANNEL", mode="after")
    @classmethod
    def validate_delivery_channel(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in DELIVERY_CHANNELS:
            raise ValueError(
                f"DELIVERY_CHANNEL must be one of {', '.join(DELIVERY_CHANNELS)}"
            )
        return value

    @field_validator("EMAIL_TEMPLATE_STYLE", mode="after")
    @classmethod
    def validate_template_style(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in TEMPLATE_STYLES:
            raise ValueError(
                f"EMAIL_TEMPLATE_STYLE must be one of {', '.join(TEMPLATE_STYLES)}"
            )
        return value

    @field_validator("APP_ORIGIN", mode="after")
    @classmethod
    def validate_app_origin(cls, v: str) -> str:
        # The CORS fallback origin must never be empty
        if not v or not v.strip():
            raise ValueError("APP_ORIGIN must not be empty")
        return v.strip()

    @field_validator("ALLOWED_ORIGINS", mode="after")
    @classmethod
    def drop_localhost_in_production(
        cls, v: List[str], info: ValidationInfo
    ) -> List[str]:
        env = info.data.get("ENVIRONMENT") or "local"
        if env == "production":
            return [o for o in v if "localhost" not in o and "127.0.0.1" not in o]
        return v

    def secret(self, name: str) -> Optional[str]:
        """Return the plain value of a SecretStr setting, or None when unset/blank."""
        value = getattr(self, name, None)
        if value is None:
            return None
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        value = value.strip()
        return value or None


settings = Settings()
