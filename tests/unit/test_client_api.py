import json

import httpx
import pytest

from app.client.api import ContactSubmissionError, submit_contact_request
from app.client.config import ContactClientSettings

PAYLOAD = {"name": "Tester", "email": "user@example.com", "message": "Hello", "turnstileToken": "tok"}


@pytest.fixture()
def settings():
    return ContactClientSettings(_env_file=None, CONTACT_ENDPOINT="https://api.example.com/api/contact")


@pytest.mark.asyncio
async def test_success_returns_reference(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": True, "referenceId": "MSG-1-ABCDEF12"})

    result = await submit_contact_request(PAYLOAD, settings, transport=httpx.MockTransport(handler))
    assert result.reference_id == "MSG-1-ABCDEF12"
    assert seen[0].headers["X-Requested-With"]
    assert json.loads(seen[0].content) == PAYLOAD


@pytest.mark.asyncio
async def test_server_message_is_surfaced(settings):
    def handler(request):
        return httpx.Response(429, json={"success": False, "message": "Too many requests. Please try again in 42 seconds."})

    with pytest.raises(ContactSubmissionError, match="42 seconds"):
        await submit_contact_request(PAYLOAD, settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_non_json_error_uses_status(settings):
    def handler(request):
        return httpx.Response(502, text="Bad gateway")

    with pytest.raises(ContactSubmissionError, match="responded with 502"):
        await submit_contact_request(PAYLOAD, settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_success_false_with_200_is_an_error(settings):
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "nope"})

    with pytest.raises(ContactSubmissionError, match="nope"):
        await submit_contact_request(PAYLOAD, settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_unconfigured_endpoint():
    settings = ContactClientSettings(_env_file=None, CONTACT_ENDPOINT="")
    with pytest.raises(ContactSubmissionError, match="not configured"):
        await submit_contact_request(PAYLOAD, settings)


@pytest.mark.asyncio
async def test_relative_endpoint_uses_base_url():
    settings = ContactClientSettings(_env_file=None, CONTACT_BASE_URL="https://site.example.com")
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, json={"success": True})

    await submit_contact_request(PAYLOAD, settings, transport=httpx.MockTransport(handler))
    assert seen == ["https://site.example.com/api/contact"]
