"""Error taxonomy for the EventSub listener.

Every error carries the HTTP status code the listener answers with when the
error is raised while handling an inbound request. Errors that only surface to
Python callers (``BindFailure``, ``RemoteCallFailure``) still carry one so they
can be reported uniformly.

Examples
--------
.. code-block:: python

    from twitch_eventsub.errors import InvalidSignature, VerificationError

    try:
        verifier.verify(subscription_id, envelope)
    except VerificationError as e:
        return e.status_code, e.message
"""

from __future__ import annotations

from typing import Optional

__all__: list[str] = [
    "EventSubError",
    "BindFailure",
    "VerificationError",
    "UnknownSubscription",
    "InvalidSignature",
    "StaleTimestamp",
    "UnsupportedEventType",
    "RemoteCallFailure",
]


class EventSubError(Exception):
    """Base class for all listener errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BindFailure(EventSubError):
    """A transport adapter could not start accepting requests.

    Raised from ``start()`` when a port is already in use, the port cannot be
    resolved, or the certificate/key pair cannot be loaded.
    """


class VerificationError(EventSubError):
    """An inbound request was rejected before reaching any handler."""

    status_code = 403


class UnknownSubscription(VerificationError):
    """No subscription is registered under the requested id."""

    status_code = 404

    def __init__(self, subscription_id: str) -> None:
        super().__init__(f"Unknown subscription: {subscription_id}")
        self.subscription_id = subscription_id


class InvalidSignature(VerificationError):
    """The message signature is missing or does not match."""

    status_code = 403


class StaleTimestamp(VerificationError):
    """The message timestamp is unparsable or outside the freshness window."""

    status_code = 403


class UnsupportedEventType(EventSubError):
    """No decoder is registered for an ``(event_type, version)`` pair."""

    status_code = 200

    def __init__(self, event_type: str, version: str) -> None:
        super().__init__(f"Unsupported event type: {event_type} (version {version})")
        self.event_type = event_type
        self.version = version


class RemoteCallFailure(EventSubError):
    """A call to the EventSub REST API failed."""

    status_code = 502

    def __init__(self, message: str, remote_status: Optional[int] = None) -> None:
        super().__init__(message)
        self.remote_status = remote_status
