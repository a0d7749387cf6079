"""End-to-end tests for POST /api/contact."""
import re
import warnings

import pytest
from fastapi import status

from app.core.errors import BodyTooLarge

REFERENCE_RE = re.compile(r"^[A-Z0-9-]+$")


def test_contact_success(client, valid_payload, channel, verifier):
    resp = client.post("/api/contact", json=valid_payload, headers={"Origin": "https://example.com"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Message sent successfully"
    assert REFERENCE_RE.match(body["referenceId"])
    assert body["referenceId"].startswith("MSG-")

    assert len(channel.sent) == 1
    sent = channel.sent[0]
    assert sent.reference_id == body["referenceId"]
    assert sent.reply_to == "user@example.com"
    assert verifier.calls == [("token-abc", "198.51.100.7", "test-secret")]

    assert resp.headers["access-control-allow-origin"] == "https://example.com"
    assert resp.headers["vary"] == "Origin"
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-request-id"]


def test_oversized_message_rejected_before_verification(client, valid_payload, channel, verifier):
    valid_payload["message"] = "m" * 5001
    resp = client.post("/api/contact", json=valid_payload)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Invalid form data"}
    assert verifier.calls == []
    assert channel.sent == []


def test_invalid_json(client, channel):
    resp = client.post(
        "/api/contact", content=b"{oops", headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid JSON payload"
    assert channel.sent == []


def test_body_too_large(client, verifier):
    resp = client.post(
        "/api/contact",
        content=b"x" * (32 * 1024 + 1),
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 413
    assert resp.json() == {
        "success": False,
        "message": "Request body too large. Maximum size is 32KB",
    }
    assert "access-control-allow-origin" in resp.headers
    assert verifier.calls == []


def test_body_too_large_status_name_is_current():
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        expected = status.HTTP_413_CONTENT_TOO_LARGE
    assert BodyTooLarge.status_code == expected == 413


def test_streamed_body_stops_reading_past_limit(client, verifier):
    sent = []

    async def chunks():
        for _ in range(64):
            sent.append(1024)
            yield b"x" * 1024

    resp = client.post(
        "/api/contact", content=chunks(), headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 413
    assert resp.json()["message"] == "Request body too large. Maximum size is 32KB"
    assert sum(sent) < 64 * 1024
    assert verifier.calls == []


def test_rate_limit_after_five_requests(client, valid_payload, channel):
    for _ in range(5):
        assert client.post("/api/contact", json=valid_payload).status_code == 200

    resp = client.post("/api/contact", json=valid_payload)
    assert resp.status_code == 429
    assert resp.headers["x-ratelimit-remaining"] == "0"
    retry_after = int(resp.headers["retry-after"])
    assert 0 < retry_after <= 60
    assert int(resp.headers["x-ratelimit-reset"]) > 0
    assert resp.json()["message"] == f"Too many requests. Please try again in {retry_after} seconds."
    assert len(channel.sent) == 5


def test_invalid_requests_count_toward_limit(client, valid_payload, verifier):
    for _ in range(5):
        client.post("/api/contact", content=b"{bad", headers={"Content-Type": "application/json"})

    resp = client.post("/api/contact", json=valid_payload)
    assert resp.status_code == 429
    assert verifier.calls == []


def test_rate_limit_is_per_client(make_app, make_client, valid_payload):
    app = make_app()
    first = make_client(app, client=("198.51.100.1", 1000))
    for _ in range(5):
        first.post("/api/contact", json=valid_payload)
    assert first.post("/api/contact", json=valid_payload).status_code == 429

    second = make_client(app, client=("198.51.100.2", 1000))
    assert second.post("/api/contact", json=valid_payload).status_code == 200


def test_missing_token(client, valid_payload, channel):
    del valid_payload["turnstileToken"]
    resp = client.post("/api/contact", json=valid_payload)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Missing verification token"
    assert channel.sent == []


def test_failed_verification(client, valid_payload, channel, verifier):
    verifier.reject()
    resp = client.post("/api/contact", json=valid_payload)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Human verification failed. Please try again."
    assert channel.sent == []


def test_missing_secret_is_server_error(make_app, make_client, test_settings, valid_payload, verifier):
    settings = test_settings.model_copy(update={"TURNSTILE_SECRET_KEY": None})
    c = make_client(make_app(settings=settings))
    resp = c.post("/api/contact", json=valid_payload)
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Server configuration error"}
    assert verifier.calls == []


def test_unconfigured_channel_is_server_error(make_app, make_client, test_settings, valid_payload, verifier):
    settings = test_settings.model_copy(
        update={"DELIVERY_CHANNEL": "webhook", "DISCORD_WEBHOOK_URL": None}
    )
    c = make_client(make_app(settings=settings, delivery_channel=None))
    resp = c.post("/api/contact", json=valid_payload)
    assert resp.status_code == 500
    assert resp.json()["message"] == "Server configuration error"
    assert verifier.calls == []


def test_delivery_failure(make_app, make_client, failing_channel, valid_payload):
    resp = make_client(make_app(delivery_channel=failing_channel)).post("/api/contact", json=valid_payload)
    assert resp.status_code == 500
    assert resp.json() == {
        "success": False,
        "message": "Failed to send message. Please try again later.",
    }


def test_logs_mask_submitter_email(client, valid_payload, caplog):
    caplog.set_level("INFO")
    client.post("/api/contact", json=valid_payload)
    assert "user@example.com" not in caplog.text
    assert "us***@ex***.com" in caplog.text


def test_request_id_is_propagated(client, valid_payload):
    resp = client.post("/api/contact", json=valid_payload, headers={"X-Request-ID": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "version": "1.0.0", "environment": "test"}


@pytest.mark.parametrize("method", ["GET", "PUT"])
def test_other_methods_not_allowed(client, method):
    resp = client.request(method, "/api/contact")
    assert resp.status_code == 405
