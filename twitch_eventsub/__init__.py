"""Twitch EventSub webhook listener.

Receive, verify and dispatch EventSub notifications delivered over HTTP.
"""

from .errors import (
    BindFailure,
    EventSubError,
    InvalidSignature,
    RemoteCallFailure,
    StaleTimestamp,
    UnknownSubscription,
    UnsupportedEventType,
    VerificationError,
)
from .listener import EventSubListener
from .model import Subscription, SubscriptionStatus

__all__: list[str] = [
    "EventSubListener",
    "Subscription",
    "SubscriptionStatus",
    "EventSubError",
    "BindFailure",
    "VerificationError",
    "UnknownSubscription",
    "InvalidSignature",
    "StaleTimestamp",
    "UnsupportedEventType",
    "RemoteCallFailure",
]
