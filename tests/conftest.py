from typing import List, Optional

import anyio
import httpx
import pytest
from httpx import ASGITransport

from app.core.config import Settings
from app.core.rate_limiter import InMemoryRateLimitStore
from app.main import create_app
from app.services.delivery import DeliveryChannel, DeliveryError, RenderedMessage
from app.services.verification_service import (
    MSG_FAILED,
    VerificationReason,
    VerificationResult,
)

# -----------------------------------------------------------------------------
# Synchronous client over httpx.ASGITransport
# -----------------------------------------------------------------------------


class CompatTestClient:
    __test__ = False

    def __init__(self, app, base_url: str = "http://testserver", **kwargs):
        self.app = app
        self._transport = ASGITransport(app=app, client=kwargs.pop("client", ("198.51.100.7", 50000)))
        self._client = httpx.AsyncClient(
            transport=self._transport,
            base_url=base_url,
            **kwargs,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        anyio.run(self._client.aclose)

    def __getattr__(self, name):
        return getattr(self._client, name)

    def request(self, method, url, **kwargs):
        async def _do_request():
            return await self._client.request(method, url, **kwargs)

        return anyio.run(_do_request)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def options(self, url, **kwargs):
        return self.request("OPTIONS", url, **kwargs)


# -----------------------------------------------------------------------------
# Collaborator fakes
# -----------------------------------------------------------------------------


class RecordingChannel(DeliveryChannel):
    name = "recording"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[RenderedMessage] = []

    async def send(self, message: RenderedMessage) -> None:
        if self.fail:
            raise DeliveryError("upstream returned 502")
        self.sent.append(message)


class StubVerifier:
    def __init__(self, result: Optional[VerificationResult] = None):
        self.result = result or VerificationResult.ok()
        self.calls = []

    async def verify(self, token, client_ip, secret):
        self.calls.append((token, client_ip, secret))
        if not token:
            return VerificationResult.fail(VerificationReason.MISSING_TOKEN, "Missing verification token")
        return self.result

    def reject(self):
        self.result = VerificationResult.fail(VerificationReason.FAILED, MSG_FAILED)


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture()
def test_settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        SITE_NAME="example.com",
        APP_ORIGIN="https://example.com",
        ALLOWED_ORIGINS=["https://example.com", "https://www.example.com"],
        ALLOWED_ORIGIN_PATTERNS=[r"^https://[a-z0-9-]+\.example-com\.pages\.dev$"],
        TRUSTED_PROXIES=[],
        TURNSTILE_SECRET_KEY="test-secret",
        CONTACT_TO_EMAIL="inbox@example.com",
        CONTACT_FROM_EMAIL="noreply@example.com",
        DELIVERY_CHANNEL="binding",
        RATE_LIMIT_MAX=5,
        RATE_LIMIT_WINDOW_SECONDS=60,
    )


@pytest.fixture()
def channel():
    return RecordingChannel()


@pytest.fixture()
def verifier():
    return StubVerifier()


@pytest.fixture()
def rate_store():
    return InMemoryRateLimitStore()


@pytest.fixture()
def make_app(monkeypatch, test_settings, channel, verifier, rate_store):
    """Build an app with fakes; keyword overrides replace the defaults."""
    monkeypatch.setattr("app.main.setup_logging", lambda *args, **kwargs: None)

    def _make(**overrides):
        kwargs = {
            "settings": test_settings,
            "delivery_channel": channel,
            "rate_limit_store": rate_store,
            "verifier": verifier,
        }
        kwargs.update(overrides)
        return create_app(**kwargs)

    return _make


@pytest.fixture()
def client(make_app):
    with CompatTestClient(make_app()) as c:
        yield c


@pytest.fixture()
def valid_payload():
    return {
        "name": "Tester",
        "email": "user@example.com",
        "message": "Hello",
        "turnstileToken": "token-abc",
    }


@pytest.fixture()
def make_client():
    """Open extra clients, e.g. from a different peer address."""
    opened = []

    def _open(app, **kwargs):
        c = CompatTestClient(app, **kwargs)
        opened.append(c)
        return c

    yield _open
    for c in opened:
        c.__exit__(None, None, None)


@pytest.fixture()
def failing_channel():
    return RecordingChannel(fail=True)
