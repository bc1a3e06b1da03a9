"""Notification verification.

Decides whether an inbound request really comes from the EventSub service and
has not been processed before. Verification runs before the body is parsed, so
forged or malformed payloads never reach handler code.

Verification order
==================
1. Resolve the subscription id in the registry (``UnknownSubscription``, 404)
2. Recompute the HMAC-SHA256 signature over
   ``message_id + timestamp + raw_body`` keyed with the subscription secret and
   compare in constant time (``InvalidSignature``, 403)
3. Reject timestamps outside the freshness window (``StaleTimestamp``, 403)
4. Record the message id in the deduplication cache; a repeat is reported as
   a duplicate, not an error

Signature format
================
The ``Twitch-Eventsub-Message-Signature`` header carries ``sha256=<hex digest>``.

.. code-block:: python

    from twitch_eventsub.verifier import sign

    signature = sign(secret, message_id, timestamp, body)
    # "sha256=5f1a..."
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Final, Optional

from .dedup import DeduplicationCache
from .errors import InvalidSignature, StaleTimestamp, UnknownSubscription
from .model import NotificationEnvelope, Subscription
from .registry import SubscriptionRegistry

__all__: list[str] = [
    "NotificationVerifier",
    "VerificationResult",
    "generate_secret",
    "sign",
    "parse_timestamp",
    "SIGNATURE_PREFIX",
]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)

SIGNATURE_PREFIX: Final[str] = "sha256="
SECRET_BYTES: Final[int] = 32

_FRACTION_PATTERN: Final[re.Pattern[str]] = re.compile(r"\.(\d+)")


def generate_secret() -> str:
    """Generate a signing secret for a new subscription.

    The remote service accepts ASCII secrets of 10 to 100 characters; this
    returns 64 hex characters.
    """
    return secrets.token_hex(SECRET_BYTES)


def sign(secret: str, message_id: str, timestamp: str, body: bytes) -> str:
    """Compute the ``sha256=<hex>`` signature of a message."""
    message = message_id.encode("utf-8") + timestamp.encode("utf-8") + body
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as sent by the remote service.

    The service sends nanosecond precision (``2019-11-16T10:11:12.634234626Z``);
    fractional seconds are truncated to microseconds. Naive values are taken
    as UTC.

    Raises
    ------
    ValueError
        If the value is not a valid timestamp.
    """
    if not value:
        raise ValueError("Empty timestamp")
    normalized = value.strip()
    if normalized[-1] in "zZ":
        normalized = normalized[:-1] + "+00:00"
    normalized = _FRACTION_PATTERN.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1)
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class VerificationResult:
    """Outcome of a successful verification."""

    subscription: Subscription
    duplicate: bool = False


class NotificationVerifier:
    """Verify inbound envelopes against a registry and deduplication cache.

    Parameters
    ----------
    registry : SubscriptionRegistry
        Source of subscriptions and their secrets.
    cache : DeduplicationCache
        Cache of recently processed message ids.
    freshness_window : timedelta, optional
        Maximum allowed distance between the message timestamp and now, in
        either direction (default: 10 minutes).
    clock : Callable[[], datetime], optional
        Returns the current aware UTC time; injectable for tests.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        cache: DeduplicationCache,
        freshness_window: timedelta = timedelta(minutes=10),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._registry = registry
        self._cache = cache
        self._freshness_window = freshness_window
        self._clock = clock or _utcnow

    def verify(self, subscription_id: str, envelope: NotificationEnvelope) -> VerificationResult:
        """Run all checks for one inbound request.

        Raises
        ------
        UnknownSubscription
            If ``subscription_id`` is not registered.
        InvalidSignature
            If the signature header is missing or does not match.
        StaleTimestamp
            If the timestamp cannot be parsed or is outside the window.
        """
        subscription = self._registry.resolve(subscription_id)
        if subscription is None:
            _LOG.warning(f"Rejected message for unknown subscription {subscription_id}")
            raise UnknownSubscription(subscription_id)

        self._check_signature(subscription, envelope)
        self._check_freshness(envelope)

        if not envelope.message_id:
            # Signed with an empty id: authentic but cannot be deduplicated.
            return VerificationResult(subscription=subscription, duplicate=False)

        duplicate = self._cache.seen(envelope.message_id)
        if duplicate:
            _LOG.info(f"Duplicate message {envelope.message_id} for subscription {subscription_id}")
        return VerificationResult(subscription=subscription, duplicate=duplicate)

    def _check_signature(self, subscription: Subscription, envelope: NotificationEnvelope) -> None:
        if not envelope.signature or not envelope.timestamp:
            _LOG.warning(f"Missing signature headers for subscription {subscription.id}")
            raise InvalidSignature("Missing message signature")

        expected = sign(subscription.secret, envelope.message_id, envelope.timestamp, envelope.raw_body)
        if not hmac.compare_digest(expected.encode("utf-8"), envelope.signature.encode("utf-8")):
            _LOG.warning(f"Invalid signature for message {envelope.message_id} on subscription {subscription.id}")
            raise InvalidSignature("Invalid message signature")

    def _check_freshness(self, envelope: NotificationEnvelope) -> None:
        try:
            sent_at = parse_timestamp(envelope.timestamp)
        except ValueError:
            _LOG.warning(f"Unparsable timestamp {envelope.timestamp!r} on message {envelope.message_id}")
            raise StaleTimestamp("Invalid message timestamp")

        skew = abs(self._clock() - sent_at)
        if skew > self._freshness_window:
            _LOG.warning(f"Stale message {envelope.message_id}: timestamp {envelope.timestamp} is {skew} away")
            raise StaleTimestamp("Message timestamp outside of the allowed window")
