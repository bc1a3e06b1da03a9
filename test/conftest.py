"""
Shared pytest fixtures for the EventSub listener tests.

Provides an in-memory REST collaborator, a connection adapter that owns no
server, and helpers to build correctly signed callback requests.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest

from twitch_eventsub.errors import RemoteCallFailure
from twitch_eventsub.model import RemoteSubscription, WebhookTransport
from twitch_eventsub.verifier import sign


class FakeEventSubApi:
    """In-memory stand-in for the EventSub REST API."""

    def __init__(self, status: str = "webhook_callback_verification_pending") -> None:
        self.status = status
        self.created: List[Tuple[str, str, Dict[str, Any], WebhookTransport]] = []
        self.deleted: List[str] = []
        self.remote: Dict[str, RemoteSubscription] = {}
        self.fail_create: Optional[Exception] = None
        self.fail_delete: Optional[Exception] = None
        self.on_create = None

    async def create_subscription(
        self, event_type: str, version: str, condition: Dict[str, Any], transport: WebhookTransport
    ) -> RemoteSubscription:
        self.created.append((event_type, version, condition, transport))
        if self.on_create is not None:
            await self.on_create(transport)
        if self.fail_create is not None:
            raise self.fail_create
        remote = RemoteSubscription(
            id=f"remote-{len(self.created)}",
            status=self.status,
            type=event_type,
            version=version,
            condition=condition,
            callback=transport.callback,
        )
        self.remote[remote.id] = remote
        return remote

    async def delete_subscription(self, subscription_id: str) -> None:
        self.deleted.append(subscription_id)
        if self.fail_delete is not None:
            raise self.fail_delete
        if subscription_id not in self.remote:
            raise RemoteCallFailure(f"Subscription {subscription_id} not found", remote_status=404)
        del self.remote[subscription_id]

    async def get_subscriptions(self) -> List[RemoteSubscription]:
        return list(self.remote.values())


class StubAdapter:
    """Connection adapter that only records the handler it was started with."""

    def __init__(self, hostname: str = "bot.example.com", path_prefix: str = "/eventsub") -> None:
        self.hostname = hostname
        self.path_prefix = path_prefix
        self.handler = None
        self.started = 0
        self.stopped = 0

    def resolve_host(self) -> str:
        return self.hostname

    def resolve_path_prefix(self) -> str:
        return self.path_prefix

    async def start(self, handler) -> None:
        self.handler = handler
        self.started += 1

    async def stop(self) -> None:
        self.stopped += 1


def now_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def signed_headers(
    secret: str,
    body: bytes,
    message_type: str = "notification",
    message_id: str = "msg-1",
    timestamp: Optional[str] = None,
    subscription_type: str = "stream.online",
) -> Dict[str, str]:
    """Build the headers the EventSub service sends with a signed message."""
    timestamp = timestamp or now_timestamp()
    return {
        "Twitch-Eventsub-Message-Id": message_id,
        "Twitch-Eventsub-Message-Timestamp": timestamp,
        "Twitch-Eventsub-Message-Signature": sign(secret, message_id, timestamp, body),
        "Twitch-Eventsub-Message-Type": message_type,
        "Twitch-Eventsub-Subscription-Type": subscription_type,
        "Twitch-Eventsub-Subscription-Version": "1",
    }


def notification_body(event: Mapping[str, Any], subscription_type: str = "stream.online") -> bytes:
    return json.dumps(
        {
            "subscription": {"id": "remote-1", "type": subscription_type, "version": "1", "status": "enabled"},
            "event": dict(event),
        }
    ).encode("utf-8")


@pytest.fixture
def fake_api() -> FakeEventSubApi:
    return FakeEventSubApi()


@pytest.fixture
def stub_adapter() -> StubAdapter:
    return StubAdapter()


@pytest.fixture(scope="function")
def anyio_backend():
    """
    Configure anyio backend to use asyncio.

    This ensures consistent behavior across all async tests.
    """
    return "asyncio"


@pytest.fixture
def make_headers():
    return signed_headers


@pytest.fixture
def make_body():
    return notification_body
