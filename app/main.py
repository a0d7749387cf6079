import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from app.api.v1 import contact
from app.core.config import Settings, settings as default_settings
from app.core.errors import ServerMisconfigured, register_exception_handlers
from app.core.logging import setup_logging
from app.core.middleware import RequestIdMiddleware
from app.core.origin_gate import OriginGate
from app.core.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimitStore,
    build_rate_limit_store,
    parse_trusted_networks,
)
from app.core.security_headers import SecurityHeadersMiddleware
from app.services.contact_service import ContactService
from app.services.delivery import DeliveryChannel, build_delivery_channel
from app.services.delivery.binding import SendBinding
from app.services.verification_service import TurnstileVerifier

logger = logging.getLogger(__name__)


tags_metadata = [
    {
        "name": "contact",
        "description": "**Contact** - Public contact form protected by origin allowlist, rate limiting and human verification.",
    },
    {
        "name": "health",
        "description": "**Health** - Liveness metadata for monitoring and uptime checks.",
    },
]


def _resolve_channel(
    settings: Settings,
    channel: Optional[DeliveryChannel],
    binding: Optional[SendBinding],
):
    if channel is not None:
        return channel, None
    try:
        return build_delivery_channel(settings, binding=binding), None
    except ServerMisconfigured as exc:
        # Startup continues; every contact request answers 500 until fixed.
        logger.error(
            "Delivery channel unavailable: %s",
            exc.detail,
            extra={"event_type": "delivery_misconfigured"},
        )
        return None, exc.detail


def create_app(
    settings: Optional[Settings] = None,
    delivery_channel: Optional[DeliveryChannel] = None,
    send_binding: Optional[SendBinding] = None,
    rate_limit_store: Optional[RateLimitStore] = None,
    verifier: Optional[TurnstileVerifier] = None,
) -> FastAPI:
    """Build the application; collaborators can be injected for tests."""
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Delivery channel: {settings.DELIVERY_CHANNEL}")
        yield
        logger.info("Shutting down...")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="""
## ContactGate API

Receives contact-form submissions from a static site, filters abuse
(origin allowlist, fixed-window rate limiting, Turnstile verification) and
forwards each accepted message through one configured delivery channel.
        """,
        openapi_tags=tags_metadata,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url=f"{settings.API_PREFIX}/openapi.json" if settings.DEBUG else None,
    )

    channel, channel_error = _resolve_channel(settings, delivery_channel, send_binding)
    store = rate_limit_store
    if store is None:
        store = build_rate_limit_store(settings.RATE_LIMIT_REDIS_URL)
    limiter = FixedWindowRateLimiter(
        store,
        max_requests=settings.RATE_LIMIT_MAX,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    if verifier is None:
        verifier = TurnstileVerifier(
            verify_url=settings.TURNSTILE_VERIFY_URL,
            timeout=settings.API_TIMEOUT_SECONDS,
        )

    app.state.settings = settings
    app.state.origin_gate = OriginGate.from_settings(settings)
    app.state.trusted_networks = parse_trusted_networks(settings.TRUSTED_PROXIES)
    app.state.rate_limiter = limiter
    app.state.contact_service = ContactService(
        settings=settings,
        limiter=limiter,
        verifier=verifier,
        channel=channel,
        channel_error=channel_error,
    )

    app.add_middleware(SecurityHeadersMiddleware)
    # Request ID Tracing (outermost)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    app.include_router(contact.router, prefix=settings.API_PREFIX, tags=["contact"])

    @app.get("/health", summary="Health check", tags=["health"])
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()
