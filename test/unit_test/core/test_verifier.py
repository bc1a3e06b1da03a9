"""Unit tests for notification verification."""

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from twitch_eventsub.dedup import DeduplicationCache
from twitch_eventsub.errors import InvalidSignature, StaleTimestamp, UnknownSubscription
from twitch_eventsub.model import NotificationEnvelope, Subscription
from twitch_eventsub.registry import SubscriptionRegistry
from twitch_eventsub.verifier import NotificationVerifier, generate_secret, parse_timestamp, sign

SECRET = "s3cr3t-value-for-tests"
SUBSCRIPTION_ID = "stream.online.v1.1337"
NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
TIMESTAMP = "2024-05-01T12:00:00.123456789Z"
BODY = b'{"subscription":{"type":"stream.online"},"event":{"broadcaster_user_id":"1337"}}'


def _envelope(
    body: bytes = BODY, timestamp: str = TIMESTAMP, message_id: str = "msg-1", signature: str = None
) -> NotificationEnvelope:
    return NotificationEnvelope(
        message_id=message_id,
        message_type="notification",
        timestamp=timestamp,
        signature=sign(SECRET, message_id, timestamp, body) if signature is None else signature,
        raw_body=body,
    )


def _flip_bit(value: bytes, index: int, bit: int) -> bytes:
    mutated = bytearray(value)
    mutated[index] ^= 1 << bit
    return bytes(mutated)


@pytest.fixture
def registry() -> SubscriptionRegistry:
    registry = SubscriptionRegistry()
    registry.register(
        Subscription(
            id=SUBSCRIPTION_ID,
            event_type="stream.online",
            version="1",
            condition={"broadcaster_user_id": "1337"},
            secret=SECRET,
            handler=lambda event: None,
        )
    )
    return registry


@pytest.fixture
def verifier(registry) -> NotificationVerifier:
    return NotificationVerifier(registry, DeduplicationCache(), clock=lambda: NOW)


class TestSign:
    def test_matches_documented_algorithm(self):
        expected = hmac.new(
            SECRET.encode(), ("msg-1" + TIMESTAMP).encode() + BODY, hashlib.sha256
        ).hexdigest()
        assert sign(SECRET, "msg-1", TIMESTAMP, BODY) == f"sha256={expected}"

    def test_generated_secrets_are_unique_and_in_length_limits(self):
        secrets = {generate_secret() for _ in range(20)}
        assert len(secrets) == 20
        assert all(10 <= len(secret) <= 100 for secret in secrets)


class TestParseTimestamp:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2024-05-01T12:00:00Z", datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)),
            ("2024-05-01T12:00:00.123456789Z", datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)),
            ("2024-05-01T12:00:00.5Z", datetime(2024, 5, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)),
            ("2024-05-01T14:00:00+02:00", datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)),
            ("2024-05-01T12:00:00", datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-13-01T00:00:00Z"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)


class TestNotificationVerifier:
    def test_valid_message_is_accepted_once(self, verifier, registry):
        first = verifier.verify(SUBSCRIPTION_ID, _envelope())
        second = verifier.verify(SUBSCRIPTION_ID, _envelope())

        assert first.subscription is registry.resolve(SUBSCRIPTION_ID)
        assert first.duplicate is False
        assert second.duplicate is True

    def test_unknown_subscription_is_checked_before_signature(self, verifier, monkeypatch):
        mock_sign = MagicMock()
        monkeypatch.setattr("twitch_eventsub.verifier.sign", mock_sign)

        with pytest.raises(UnknownSubscription) as exc_info:
            verifier.verify("missing", _envelope(signature="sha256=garbage"))

        assert exc_info.value.status_code == 404
        mock_sign.assert_not_called()

    @pytest.mark.parametrize("signature", ["", "sha256=", "sha256=deadbeef", "md5=abc"])
    def test_invalid_signature(self, verifier, signature):
        with pytest.raises(InvalidSignature) as exc_info:
            verifier.verify(SUBSCRIPTION_ID, _envelope(signature=signature))
        assert exc_info.value.status_code == 403

    def test_missing_timestamp_is_rejected(self, verifier):
        with pytest.raises(InvalidSignature):
            verifier.verify(SUBSCRIPTION_ID, _envelope(timestamp=""))

    @pytest.mark.parametrize("index", [0, 7, 30, len(BODY) - 1])
    @pytest.mark.parametrize("bit", range(8))
    def test_body_bit_flip_is_rejected(self, verifier, index, bit):
        signature = sign(SECRET, "msg-1", TIMESTAMP, BODY)
        envelope = _envelope(body=_flip_bit(BODY, index, bit), signature=signature)
        with pytest.raises(InvalidSignature):
            verifier.verify(SUBSCRIPTION_ID, envelope)

    @pytest.mark.parametrize("index", range(0, len(TIMESTAMP), 3))
    @pytest.mark.parametrize("bit", range(7))
    def test_timestamp_bit_flip_is_rejected(self, verifier, index, bit):
        signature = sign(SECRET, "msg-1", TIMESTAMP, BODY)
        mutated = _flip_bit(TIMESTAMP.encode("ascii"), index, bit).decode("ascii")
        with pytest.raises((InvalidSignature, StaleTimestamp)) as exc_info:
            verifier.verify(SUBSCRIPTION_ID, _envelope(timestamp=mutated, signature=signature))
        assert exc_info.value.status_code == 403

    @pytest.mark.parametrize("index", [0, 6, 7, 20, 70])
    @pytest.mark.parametrize("bit", range(7))
    def test_signature_bit_flip_is_rejected(self, verifier, index, bit):
        signature = sign(SECRET, "msg-1", TIMESTAMP, BODY)
        mutated = _flip_bit(signature.encode("ascii"), index, bit).decode("ascii")
        with pytest.raises(InvalidSignature):
            verifier.verify(SUBSCRIPTION_ID, _envelope(signature=mutated))

    def test_rejected_message_is_not_recorded(self, registry):
        cache = DeduplicationCache()
        verifier = NotificationVerifier(registry, cache, clock=lambda: NOW)

        with pytest.raises(InvalidSignature):
            verifier.verify(SUBSCRIPTION_ID, _envelope(signature="sha256=00"))

        assert "msg-1" not in cache
        assert verifier.verify(SUBSCRIPTION_ID, _envelope()).duplicate is False

    @pytest.mark.parametrize("offset", [timedelta(minutes=11), timedelta(minutes=-11), timedelta(days=2)])
    def test_stale_timestamp_with_valid_signature(self, registry, offset):
        verifier = NotificationVerifier(registry, DeduplicationCache(), clock=lambda: NOW + offset)

        with pytest.raises(StaleTimestamp) as exc_info:
            verifier.verify(SUBSCRIPTION_ID, _envelope())
        assert exc_info.value.status_code == 403

    def test_timestamp_inside_window(self, registry):
        verifier = NotificationVerifier(registry, DeduplicationCache(), clock=lambda: NOW + timedelta(minutes=9))
        assert verifier.verify(SUBSCRIPTION_ID, _envelope()).duplicate is False

    def test_custom_freshness_window(self, registry):
        verifier = NotificationVerifier(
            registry,
            DeduplicationCache(),
            freshness_window=timedelta(seconds=30),
            clock=lambda: NOW + timedelta(minutes=1),
        )
        with pytest.raises(StaleTimestamp):
            verifier.verify(SUBSCRIPTION_ID, _envelope())

    def test_unparsable_signed_timestamp(self, verifier):
        with pytest.raises(StaleTimestamp):
            verifier.verify(SUBSCRIPTION_ID, _envelope(timestamp="not-a-time"))

    def test_empty_message_id_is_never_duplicate(self, verifier):
        assert verifier.verify(SUBSCRIPTION_ID, _envelope(message_id="")).duplicate is False
        assert verifier.verify(SUBSCRIPTION_ID, _envelope(message_id="")).duplicate is False


class TestNotificationEnvelope:
    def test_from_headers_is_case_insensitive(self):
        envelope = NotificationEnvelope.from_headers(
            {
                "TWITCH-EVENTSUB-MESSAGE-ID": "msg-1",
                "twitch-eventsub-message-timestamp": TIMESTAMP,
                "Twitch-Eventsub-Message-Signature": "sha256=abc",
                "Twitch-Eventsub-Message-Type": "notification",
                "Twitch-Eventsub-Subscription-Type": "stream.online",
            },
            BODY,
        )

        assert envelope.message_id == "msg-1"
        assert envelope.timestamp == TIMESTAMP
        assert envelope.signature == "sha256=abc"
        assert envelope.message_type == "notification"
        assert envelope.subscription_type == "stream.online"
        assert envelope.subscription_version is None
        assert envelope.raw_body == BODY

    def test_missing_headers_default_to_empty(self):
        envelope = NotificationEnvelope.from_headers({}, b"")
        assert envelope.message_id == ""
        assert envelope.signature == ""
