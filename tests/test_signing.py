"""Tests for payload signing and input validation helpers."""

from __future__ import annotations

import hashlib
import hmac
import json
from datetime import UTC, datetime, timedelta

import pytest

from hookrelay.models import RelayEventType, WebhookConfig
from hookrelay.signing import (
    RESERVED_HEADERS,
    build_signed_payload,
    generate_secret,
    is_valid_webhook_url,
    malformed_header_names,
    reserved_header_names,
    secret_preview,
    serialize_body,
    sign,
    validate_events,
    verify,
    verify_for_webhook,
    verify_payload,
)

SECRET = "a" * 64


class TestSign:
    """Tests for HMAC-SHA256 signing and verification."""

    def test_sign_is_hex_hmac_sha256(self):
        """Signature should be the hex HMAC-SHA256 of the body under the secret."""
        body = '{"event":"task.created"}'
        expected = hmac.new(SECRET.encode(), body.encode(), hashlib.sha256).hexdigest()
        assert sign(body, SECRET) == expected
        assert len(sign(body, SECRET)) == 64

    def test_sign_accepts_bytes(self):
        """String and UTF-8 bytes input should produce the same signature."""
        body = '{"name":"Zoë"}'
        assert sign(body, SECRET) == sign(body.encode("utf-8"), SECRET)

    def test_verify_round_trip(self):
        """A signature verifies against the exact body and secret it was made with."""
        body = '{"a":1}'
        assert verify(body, sign(body, SECRET), SECRET) is True

    def test_verify_rejects_modified_body(self):
        """Any change to the body should fail verification."""
        signature = sign('{"a":1}', SECRET)
        assert verify('{"a":2}', signature, SECRET) is False

    def test_verify_rejects_wrong_secret(self):
        """Verification with a different secret should fail."""
        body = '{"a":1}'
        assert verify(body, sign(body, SECRET), "b" * 64) is False

    @pytest.mark.parametrize("signature", ["", "not-hex", "é" * 64, None, 12345])
    def test_verify_malformed_signature_returns_false(self, signature):
        """Malformed signatures return False instead of raising."""
        assert verify('{"a":1}', signature, SECRET) is False

    def test_verify_empty_secret_returns_false(self):
        body = '{"a":1}'
        assert verify(body, sign(body, SECRET), "") is False

    def test_verify_non_text_body_returns_false(self):
        assert verify(None, "abc", SECRET) is False  # type: ignore[arg-type]


class TestSerializeBody:
    """Tests for the canonical JSON serialization."""

    def test_compact_and_ordered(self):
        """Serialization uses compact separators and keeps key order."""
        body = {"event": "task.created", "timestamp": "t", "organization_id": "o", "data": {}}
        assert serialize_body(body) == (
            '{"event":"task.created","timestamp":"t","organization_id":"o","data":{}}'
        )

    def test_non_ascii_kept(self):
        """Non-ASCII characters are emitted as-is, not escaped."""
        assert serialize_body({"name": "Zoë"}) == '{"name":"Zoë"}'


class TestSignedPayload:
    """Tests for building and verifying full relay payloads."""

    def test_signature_covers_unsigned_body(self):
        """The payload signature should be over every field except the signature."""
        payload = build_signed_payload(
            RelayEventType.TASK_CREATED,
            "2026-01-02T03:04:05.678Z",
            "org_1",
            {"task_id": "t_1"},
            SECRET,
        )
        assert payload.signature == sign(serialize_body(payload.unsigned_body()), SECRET)
        assert list(payload.wire_body()) == [
            "event",
            "timestamp",
            "organization_id",
            "data",
            "signature",
        ]

    def test_verify_payload_round_trip(self):
        """A receiver can verify the parsed wire body with the shared secret."""
        payload = build_signed_payload("member.added", "ts", "org_1", {"user_id": "u_1"}, SECRET)
        received = json.loads(serialize_body(payload.wire_body()))
        assert verify_payload(received, SECRET) is True

    def test_verify_payload_detects_tampering(self):
        """Changing the data after signing should fail verification."""
        payload = build_signed_payload("member.added", "ts", "org_1", {"user_id": "u_1"}, SECRET)
        received = payload.wire_body()
        received["data"] = {"user_id": "u_2"}
        assert verify_payload(received, SECRET) is False

    def test_verify_payload_missing_field(self):
        """Bodies missing a signed field return False."""
        payload = build_signed_payload("member.added", "ts", "org_1", {}, SECRET)
        received = payload.wire_body()
        del received["timestamp"]
        assert verify_payload(received, SECRET) is False

    def test_data_is_normalized_to_json(self):
        """Datetimes in event data are serialized to ISO strings before signing."""
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        payload = build_signed_payload("task.completed", "ts", "org_1", {"at": when}, SECRET)
        assert payload.data == {"at": "2026-01-02T03:04:05Z"}

    def test_different_secrets_different_signatures(self):
        """The same event signed for two webhooks yields different signatures."""
        first = build_signed_payload("task.created", "ts", "org_1", {}, generate_secret())
        second = build_signed_payload("task.created", "ts", "org_1", {}, generate_secret())
        assert first.signature != second.signature


class TestVerifyForWebhook:
    """Tests for verification across a secret rotation."""

    def _rotated(self, expires_in: timedelta) -> WebhookConfig:
        return WebhookConfig(
            organization_id="org_1",
            name="Hook",
            url="https://example.com/hook",
            secret="new-secret",
            events=["task.created"],
            previous_secret="old-secret",
            previous_secret_expires_at=datetime.now(UTC) + expires_in,
        )

    def test_current_secret_verifies(self):
        webhook = self._rotated(timedelta(hours=1))
        body = '{"a":1}'
        assert verify_for_webhook(body, sign(body, "new-secret"), webhook) is True

    def test_previous_secret_verifies_during_grace(self):
        """A rotated-out secret keeps verifying until its grace window closes."""
        webhook = self._rotated(timedelta(hours=1))
        body = '{"a":1}'
        assert verify_for_webhook(body, sign(body, "old-secret"), webhook) is True

    def test_previous_secret_rejected_after_grace(self):
        webhook = self._rotated(timedelta(hours=-1))
        body = '{"a":1}'
        assert verify_for_webhook(body, sign(body, "old-secret"), webhook) is False


class TestWebhookUrl:
    """Tests for endpoint URL validation."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/hook",
            "https://localhost:3000/hook",
            "https://hooks.zapier.com/hooks/catch/123/abc/",
            "http://localhost:3000/hook",
            "http://127.0.0.1:8080/hook",
        ],
    )
    def test_accepted(self, url):
        assert is_valid_webhook_url(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "http://example.com/hook",
            "ftp://example.com/hook",
            "https://",
            "not a url",
            "",
            "http://[::1",
            None,
        ],
    )
    def test_rejected(self, url):
        assert is_valid_webhook_url(url) is False


class TestValidateEvents:
    """Tests for event catalog validation."""

    def test_returns_unknown_events(self):
        assert validate_events(["task.created", "bogus.event"]) == ["bogus.event"]

    def test_all_valid(self):
        assert validate_events(["task.created", "compliance.score_changed"]) == []

    def test_accepts_enum_members(self):
        assert validate_events([RelayEventType.INCIDENT_CREATED]) == []

    def test_non_string_is_invalid(self):
        assert validate_events([42]) == ["42"]


class TestHelpers:
    """Tests for header and secret helpers."""

    def test_reserved_header_names_case_insensitive(self):
        headers = {"x-relay-signature": "a", "X-Custom": "b", "user-agent": "c"}
        assert reserved_header_names(headers) == ["x-relay-signature", "user-agent"]

    def test_malformed_header_names(self):
        headers = {
            "Authorization": "Bearer t",
            "X-Tab": "a\tb",
            "X-Team": "caf\u00e9",
            "X-Bell": "\x07",
            "Bad:Name": "x",
        }
        assert malformed_header_names(headers) == ["X-Team", "X-Bell", "Bad:Name"]

    def test_reserved_headers_lowercased(self):
        assert all(name == name.lower() for name in RESERVED_HEADERS)
        assert "content-type" in RESERVED_HEADERS

    def test_generate_secret(self):
        """Secrets are 32 random bytes as 64 hex characters."""
        secret = generate_secret()
        assert len(secret) == 64
        int(secret, 16)
        assert generate_secret() != secret

    def test_secret_preview(self):
        assert secret_preview("abcdef0123456789") == "abcdef01..."
        assert secret_preview(None) == ""
