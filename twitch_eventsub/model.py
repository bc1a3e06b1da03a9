from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

__all__: list[str] = [
    "SubscriptionStatus",
    "MessageType",
    "EventHandlerFunc",
    "RevocationHandlerFunc",
    "Subscription",
    "NotificationEnvelope",
    "WebhookTransport",
    "RemoteSubscription",
    "MESSAGE_ID_HEADER",
    "MESSAGE_TIMESTAMP_HEADER",
    "MESSAGE_SIGNATURE_HEADER",
    "MESSAGE_TYPE_HEADER",
    "SUBSCRIPTION_TYPE_HEADER",
    "SUBSCRIPTION_VERSION_HEADER",
]

MESSAGE_ID_HEADER = "twitch-eventsub-message-id"
MESSAGE_TIMESTAMP_HEADER = "twitch-eventsub-message-timestamp"
MESSAGE_SIGNATURE_HEADER = "twitch-eventsub-message-signature"
MESSAGE_TYPE_HEADER = "twitch-eventsub-message-type"
SUBSCRIPTION_TYPE_HEADER = "twitch-eventsub-subscription-type"
SUBSCRIPTION_VERSION_HEADER = "twitch-eventsub-subscription-version"

EventHandlerFunc = Callable[[Any], Awaitable[Any] | Any]
RevocationHandlerFunc = Callable[[str], Awaitable[Any] | Any]


class SubscriptionStatus(str, Enum):
    """Local lifecycle state of a subscription."""

    PENDING = "pending"
    ENABLED = "enabled"
    REVOKED = "revoked"


class MessageType(str, Enum):
    """Values of the ``Twitch-Eventsub-Message-Type`` header."""

    CHALLENGE = "webhook_callback_verification"
    NOTIFICATION = "notification"
    REVOCATION = "revocation"


@dataclass(slots=True, kw_only=True)
class Subscription:
    """
    A subscription owned by a listener's registry.

    :param id: the local callback id, embedded in the callback URL path
    :param event_type: the EventSub type, e.g. ``stream.online``
    :param version: the EventSub type version, e.g. ``1``
    :param condition: the opaque condition sent to the remote service
    :param secret: the signing secret shared with the remote service
    :param handler: called with the decoded event for every notification
    :param revocation_handler: called with the revocation reason (optional)
    :param remote_id: the id assigned by the remote service once created
    """

    id: str
    event_type: str
    version: str
    condition: Dict[str, Any]
    secret: str
    handler: EventHandlerFunc
    revocation_handler: Optional[RevocationHandlerFunc] = None
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    remote_id: Optional[str] = None


@dataclass(slots=True, kw_only=True, frozen=True)
class NotificationEnvelope:
    """The signed parts of one inbound request.

    ``timestamp`` is kept exactly as sent because it is part of the signed
    message.
    """

    message_id: str
    message_type: str
    timestamp: str
    signature: str
    raw_body: bytes
    subscription_type: Optional[str] = None
    subscription_version: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], body: bytes) -> "NotificationEnvelope":
        lowered = {key.lower(): value for key, value in headers.items()}
        return cls(
            message_id=lowered.get(MESSAGE_ID_HEADER, ""),
            message_type=lowered.get(MESSAGE_TYPE_HEADER, ""),
            timestamp=lowered.get(MESSAGE_TIMESTAMP_HEADER, ""),
            signature=lowered.get(MESSAGE_SIGNATURE_HEADER, ""),
            raw_body=body,
            subscription_type=lowered.get(SUBSCRIPTION_TYPE_HEADER),
            subscription_version=lowered.get(SUBSCRIPTION_VERSION_HEADER),
        )


@dataclass(slots=True, kw_only=True, frozen=True)
class WebhookTransport:
    """Transport block sent when creating a remote subscription."""

    callback: str
    secret: str
    method: str = "webhook"

    def to_dict(self) -> Dict[str, str]:
        return {"method": self.method, "callback": self.callback, "secret": self.secret}


@dataclass(slots=True, kw_only=True)
class RemoteSubscription:
    """A subscription as reported by the EventSub REST API."""

    id: str
    status: str
    type: str
    version: str
    condition: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    callback: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "RemoteSubscription":
        transport = data.get("transport") or {}
        return cls(
            id=data["id"],
            status=data.get("status", ""),
            type=data.get("type", ""),
            version=str(data.get("version", "")),
            condition=dict(data.get("condition") or {}),
            created_at=data.get("created_at"),
            callback=transport.get("callback"),
        )
