"""Tests for each delivery channel and the startup factory."""
import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from app.core.config import Settings
from app.core.errors import ServerMisconfigured
from app.services.delivery import DeliveryError, RenderedMessage, build_delivery_channel
from app.services.delivery.binding import BindingChannel, OutboundEmail, SmtpSendBinding
from app.services.delivery.provider import ProviderApiChannel
from app.services.delivery.signed_api import SignedApiChannel
from app.services.delivery.webhook import WebhookChannel, truncate_message


@pytest.fixture()
def message():
    return RenderedMessage(
        reference_id="MSG-LQ2X-0A1B2C3D",
        name="Tester",
        email="user@example.com",
        message="Hello",
        client_ip="203.0.113.5",
        submitted_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        subject="[example.com] Contact from Tester",
        text="plain body",
        html="<p>html body</p>",
    )


class Capture:
    def __init__(self, status=200):
        self.status = status
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status, json={"ok": self.status < 300})

    @property
    def body(self):
        return json.loads(self.requests[-1].content)


# =============================================================================
# Webhook
# =============================================================================


class TestWebhookChannel:
    @pytest.mark.asyncio
    async def test_posts_embed(self, message):
        capture = Capture(200)
        channel = WebhookChannel(
            "https://hooks.example.com/abc",
            username="Site Contact",
            transport=httpx.MockTransport(capture),
        )
        await channel.send(message)

        body = capture.body
        assert body["username"] == "Site Contact"
        embed = body["embeds"][0]
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert fields["Reference ID"] == "`MSG-LQ2X-0A1B2C3D`"
        assert fields["Email"] == "user@example.com"
        assert embed["footer"]["text"] == "IP: 203.0.113.5"
        assert embed["timestamp"].startswith("2026-03-01T12:00:00")

    def test_truncates_long_message(self):
        assert truncate_message("x" * 1000) == "x" * 1000
        assert truncate_message("x" * 1001) == "x" * 1000 + "..."

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, message):
        channel = WebhookChannel("https://hooks.example.com/abc", transport=httpx.MockTransport(Capture(500)))
        with pytest.raises(DeliveryError):
            await channel.send(message)

    @pytest.mark.asyncio
    async def test_timeout_raises(self, message):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        channel = WebhookChannel("https://hooks.example.com/abc", transport=httpx.MockTransport(handler))
        with pytest.raises(DeliveryError):
            await channel.send(message)


# =============================================================================
# Binding
# =============================================================================


class FakeBinding:
    def __init__(self, error=None, delay=0.0):
        self.error = error
        self.delay = delay
        self.sent = []

    async def send(self, email: OutboundEmail) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.sent.append(email)


class TestBindingChannel:
    @pytest.mark.asyncio
    async def test_sends_outbound_email(self, message):
        binding = FakeBinding()
        channel = BindingChannel(binding, from_addr="noreply@example.com", to_addr="inbox@example.com")
        await channel.send(message)

        email = binding.sent[0]
        assert email.to_addr == "inbox@example.com"
        assert email.reply_to == "user@example.com"
        assert email.subject == message.subject
        assert email.html == message.html

    @pytest.mark.asyncio
    async def test_binding_error_raises(self, message):
        channel = BindingChannel(FakeBinding(error=OSError("relay down")), "noreply@example.com", "inbox@example.com")
        with pytest.raises(DeliveryError):
            await channel.send(message)

    @pytest.mark.asyncio
    async def test_slow_binding_times_out(self, message):
        channel = BindingChannel(
            FakeBinding(delay=1.0), "noreply@example.com", "inbox@example.com", timeout=0.01
        )
        with pytest.raises(DeliveryError):
            await channel.send(message)

    def test_smtp_message_headers(self):
        msg = SmtpSendBinding.build_message(
            OutboundEmail(
                from_addr="noreply@example.com",
                to_addr="inbox@example.com",
                subject="Hello",
                text="plain",
                html="<p>html</p>",
                reply_to="user@example.com",
                from_name="Contact Form",
            )
        )
        assert msg["To"] == "inbox@example.com"
        assert msg["Reply-To"] == "user@example.com"
        assert msg["From"] == "Contact Form <noreply@example.com>"
        assert msg.is_multipart()


# =============================================================================
# Provider API
# =============================================================================


class TestProviderApiChannel:
    @pytest.mark.asyncio
    async def test_posts_template_request(self, message):
        capture = Capture(200)
        channel = ProviderApiChannel(
            api_url="https://api.emailjs.example/send",
            service_id="svc",
            template_id="tpl",
            public_key="pub",
            private_key="priv",
            transport=httpx.MockTransport(capture),
        )
        await channel.send(message)

        body = capture.body
        assert body["service_id"] == "svc"
        assert body["template_id"] == "tpl"
        assert body["user_id"] == "pub"
        assert body["accessToken"] == "priv"
        assert body["template_params"]["reference_id"] == "MSG-LQ2X-0A1B2C3D"
        assert body["template_params"]["reply_to"] == "user@example.com"

    @pytest.mark.asyncio
    async def test_rejection_raises(self, message):
        channel = ProviderApiChannel(
            "https://api.emailjs.example/send", "svc", "tpl", "pub",
            transport=httpx.MockTransport(Capture(400)),
        )
        with pytest.raises(DeliveryError):
            await channel.send(message)


# =============================================================================
# Signed API
# =============================================================================


class TestSignedApiChannel:
    @pytest.mark.asyncio
    async def test_personalization_carries_dkim(self, message):
        capture = Capture(202)
        channel = SignedApiChannel(
            api_url="https://mail.example.net/tx/v1/send",
            to_email="inbox@example.com",
            from_email="noreply@example.com",
            dkim_domain="example.com",
            dkim_private_key="dkim-key",
            transport=httpx.MockTransport(capture),
        )
        await channel.send(message)

        body = capture.body
        personalization = body["personalizations"][0]
        assert personalization["to"] == [{"email": "inbox@example.com"}]
        assert personalization["dkim_domain"] == "example.com"
        assert personalization["dkim_selector"] == "mailchannels"
        assert personalization["dkim_private_key"] == "dkim-key"
        assert body["reply_to"] == {"email": "user@example.com", "name": "Tester"}
        assert [c["type"] for c in body["content"]] == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_rejection_raises(self, message):
        channel = SignedApiChannel(
            "https://mail.example.net/tx/v1/send", "inbox@example.com", "noreply@example.com",
            "example.com", "dkim-key", transport=httpx.MockTransport(Capture(401)),
        )
        with pytest.raises(DeliveryError):
            await channel.send(message)


# =============================================================================
# Factory
# =============================================================================


def _settings(**overrides):
    base = {"_env_file": None, "ENVIRONMENT": "test"}
    base.update(overrides)
    return Settings(**base)


class TestFactory:
    def test_webhook(self):
        channel = build_delivery_channel(
            _settings(DELIVERY_CHANNEL="webhook", DISCORD_WEBHOOK_URL="https://hooks.example.com/x")
        )
        assert isinstance(channel, WebhookChannel)

    def test_binding_with_injected_capability(self):
        channel = build_delivery_channel(
            _settings(
                DELIVERY_CHANNEL="binding",
                CONTACT_TO_EMAIL="inbox@example.com",
                CONTACT_FROM_EMAIL="noreply@example.com",
            ),
            binding=FakeBinding(),
        )
        assert isinstance(channel, BindingChannel)

    def test_binding_without_capability_needs_smtp(self):
        with pytest.raises(ServerMisconfigured) as exc:
            build_delivery_channel(
                _settings(
                    DELIVERY_CHANNEL="binding",
                    CONTACT_TO_EMAIL="inbox@example.com",
                    CONTACT_FROM_EMAIL="noreply@example.com",
                    SMTP_HOST="",
                )
            )
        assert "SMTP_HOST" in exc.value.detail

    def test_provider(self):
        channel = build_delivery_channel(
            _settings(
                DELIVERY_CHANNEL="provider",
                EMAILJS_SERVICE_ID="svc",
                EMAILJS_TEMPLATE_ID="tpl",
                EMAILJS_PUBLIC_KEY="pub",
            )
        )
        assert isinstance(channel, ProviderApiChannel)

    def test_signed_api_lists_every_missing_setting(self):
        with pytest.raises(ServerMisconfigured) as exc:
            build_delivery_channel(
                _settings(
                    DELIVERY_CHANNEL="signed_api",
                    CONTACT_TO_EMAIL="",
                    CONTACT_FROM_EMAIL="",
                    DKIM_DOMAIN="",
                    DKIM_PRIVATE_KEY="",
                )
            )
        for name in ("CONTACT_TO_EMAIL", "CONTACT_FROM_EMAIL", "DKIM_DOMAIN", "DKIM_PRIVATE_KEY"):
            assert name in exc.value.detail

    def test_unknown_channel_rejected_by_settings(self):
        with pytest.raises(ValueError):
            _settings(DELIVERY_CHANNEL="carrier-pigeon")
