"""EventSub webhook listener.

The listener receives EventSub notifications over HTTP and manages the
subscriptions that cause them. It ties together a connection adapter, the
REST collaborator, a subscription registry, a deduplication cache, the
notification verifier and the event dispatcher.

Module Overview
===============
- **subscribe**: create a remote subscription whose callback points at this
  listener, and register its handler and signing secret locally
- **handle_request**: verify an inbound request and answer the challenge
  handshake, dispatch a notification, or process a revocation
- **unsubscribe**: delete the remote subscription and always drop local state
- **start/stop**: run the connection adapter; stopping never unsubscribes

Subscription lifecycle
======================
``PENDING -> ENABLED -> REVOKED``; an explicit ``unsubscribe`` removes a
subscription from any non-revoked state.

Quick Start
===========

.. code-block:: python

    import asyncio
    from twitch_eventsub.adapters import EnvPortAdapter
    from twitch_eventsub.client import HelixEventSubClient
    from twitch_eventsub.listener import EventSubListener

    async def main():
        api = HelixEventSubClient(client_id="abc", access_token="app-token")
        listener = EventSubListener(api, EnvPortAdapter(hostname="bot.example.com"))
        await listener.start()

        async def on_online(event):
            print(f"{event.broadcaster_user_name} went live")

        await listener.subscribe_to_stream_online_events("1337", on_online)
        await asyncio.Event().wait()

    asyncio.run(main())

HTTP responses
==============
- ``200``: accepted, duplicate, or challenge echoed (text body)
- ``400``: unknown message type or malformed challenge
- ``403``: invalid signature or stale timestamp
- ``404``: unknown subscription
"""

from __future__ import annotations

import json
import logging
import re
from datetime import timedelta
from typing import Any, Dict, Final, Mapping, Optional, Tuple

from .adapters.base import ConnectionAdapter
from .client.protocol import EventSubApi
from .dedup import DeduplicationCache
from .dispatcher import EventDispatcher
from .errors import RemoteCallFailure, UnknownSubscription, VerificationError
from .events import EventSubEventType
from .model import (
    EventHandlerFunc,
    MessageType,
    NotificationEnvelope,
    RevocationHandlerFunc,
    Subscription,
    SubscriptionStatus,
    WebhookTransport,
)
from .registry import SubscriptionRegistry
from .verifier import NotificationVerifier, generate_secret

__all__: list[str] = ["EventSubListener", "subscription_id_for"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)

_UNSAFE_ID_CHARS: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]")


def subscription_id_for(event_type: str, version: str, condition: Mapping[str, Any]) -> str:
    """Derive the local id of a subscription from what it subscribes to.

    The same logical subscription always maps to the same id, so a retried
    ``subscribe`` replaces the earlier registration instead of adding one.
    Condition keys are part of the id: conditions naming different fields
    with the same value are different subscriptions.

    Examples
    --------
    >>> subscription_id_for("stream.online", "1", {"broadcaster_user_id": "1337"})
    'stream.online.v1.broadcaster_user_id-1337'
    """
    parts = [str(event_type), f"v{version}"] + [f"{key}-{condition[key]}" for key in sorted(condition)]
    return _UNSAFE_ID_CHARS.sub("_", ".".join(parts))


class EventSubListener:
    """Receive, verify and dispatch EventSub webhook notifications.

    Parameters
    ----------
    api : EventSubApi
        REST collaborator used to create, delete and list subscriptions.
    adapter : ConnectionAdapter
        How the listener is reachable from the network.
    freshness_window : timedelta, optional
        Accepted clock skew of message timestamps (default: 10 minutes).
    dedup_ttl : float, optional
        Seconds a processed message id is remembered (default: 600).
    dedup_max_size : int, optional
        Maximum number of remembered message ids (default: 10000).
    dispatcher : EventDispatcher, optional
        Custom dispatcher, e.g. with additional decoders.
    """

    def __init__(
        self,
        api: EventSubApi,
        adapter: ConnectionAdapter,
        freshness_window: timedelta = timedelta(minutes=10),
        dedup_ttl: float = 600.0,
        dedup_max_size: int = 10_000,
        dispatcher: Optional[EventDispatcher] = None,
    ):
        self._api = api
        self._adapter = adapter
        self._registry = SubscriptionRegistry()
        self._cache = DeduplicationCache(ttl=dedup_ttl, max_size=dedup_max_size)
        self._verifier = NotificationVerifier(self._registry, self._cache, freshness_window=freshness_window)
        self._dispatcher = dispatcher or EventDispatcher()
        self._running = False

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the connection adapter.

        Raises
        ------
        BindFailure
            If the adapter cannot start accepting requests.
        """
        if self._running:
            return
        await self._adapter.start(self.handle_request)
        self._running = True
        _LOG.info(f"EventSub listener started at https://{self._adapter.resolve_host()}")

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop accepting requests.

        Subscriptions stay active on the remote service. Handler invocations
        already running continue; pass ``timeout`` to wait for them.
        """
        if self._running:
            await self._adapter.stop()
            self._running = False
            _LOG.info("EventSub listener stopped")
        if timeout is not None:
            await self._dispatcher.drain(timeout)

    def callback_url(self, subscription_id: str) -> str:
        return f"https://{self._adapter.resolve_host()}{self._adapter.resolve_path_prefix()}/{subscription_id}"

    # ===== Subscription management =====

    async def subscribe(
        self,
        event_type: str,
        version: str,
        condition: Dict[str, Any],
        handler: EventHandlerFunc,
        on_revoke: Optional[RevocationHandlerFunc] = None,
    ) -> str:
        """Create a remote subscription delivering to this listener.

        Parameters
        ----------
        event_type : str
            EventSub type, e.g. ``stream.online``.
        version : str
            EventSub type version, e.g. ``1``.
        condition : Dict[str, Any]
            Condition object sent to the remote service.
        handler : EventHandlerFunc
            Called with the decoded event of every notification (sync or async).
        on_revoke : RevocationHandlerFunc, optional
            Called with the revocation reason if the service revokes the subscription.

        Returns
        -------
        str
            The local subscription id.

        Raises
        ------
        RemoteCallFailure
            If the remote service did not create the subscription. Local
            state is left as it was before the call.
        """
        event_type = str(event_type)
        version = str(version)
        subscription_id = subscription_id_for(event_type, version, condition)
        # A live entry keeps its secret: the remote service may still deliver with it.
        previous = self._registry.resolve(subscription_id)
        subscription = Subscription(
            id=subscription_id,
            event_type=event_type,
            version=version,
            condition=dict(condition),
            secret=previous.secret if previous is not None else generate_secret(),
            handler=handler,
            revocation_handler=on_revoke,
        )
        transport = WebhookTransport(callback=self.callback_url(subscription_id), secret=subscription.secret)

        # Registered before the remote call: the challenge may arrive before it returns.
        self._registry.register(subscription)
        try:
            created = await self._api.create_subscription(event_type, version, dict(condition), transport)
        except Exception as e:
            self._registry.roll_back(subscription, previous)
            _LOG.error(f"Failed to create subscription {subscription_id}: {e}")
            if isinstance(e, RemoteCallFailure):
                raise
            raise RemoteCallFailure(f"Failed to create subscription {subscription_id}: {e}") from e

        self._registry.attach_remote(subscription_id, created.id)
        if created.status == SubscriptionStatus.ENABLED.value:
            self._registry.mark_enabled(subscription_id)
        _LOG.info(f"Subscribed to {event_type} as {subscription_id} (remote id {created.id}, status {created.status})")
        return subscription_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Delete a subscription remotely and locally.

        The local entry is removed even when the remote call fails.

        Raises
        ------
        UnknownSubscription
            If no subscription is registered under ``subscription_id``.
        RemoteCallFailure
            If the remote delete failed (after local removal).
        """
        subscription = self._registry.resolve(subscription_id)
        if subscription is None:
            raise UnknownSubscription(subscription_id)

        try:
            if subscription.remote_id is not None:
                await self._api.delete_subscription(subscription.remote_id)
        except Exception as e:
            _LOG.error(f"Failed to delete remote subscription for {subscription_id}: {e}")
            if isinstance(e, RemoteCallFailure):
                raise
            raise RemoteCallFailure(f"Failed to delete subscription {subscription_id}: {e}") from e
        finally:
            self._registry.remove(subscription_id)
        _LOG.info(f"Unsubscribed {subscription_id}")

    async def refresh_statuses(self) -> int:
        """Mark local subscriptions enabled when the remote service reports them enabled.

        Returns
        -------
        int
            Number of subscriptions that transitioned to enabled.
        """
        enabled = 0
        for remote in await self._api.get_subscriptions():
            if remote.status != SubscriptionStatus.ENABLED.value:
                continue
            subscription = self._registry.find_by_remote_id(remote.id)
            if subscription is not None and self._registry.mark_enabled(subscription.id):
                enabled += 1
        return enabled

    # ===== Request handling =====

    async def handle_request(self, path: str, headers: Mapping[str, str], body: bytes) -> Tuple[int, str]:
        """Handle one inbound callback request.

        Parameters
        ----------
        path : str
            Request path, ``<prefix>/<subscription id>``.
        headers : Mapping[str, str]
            Request headers (any case).
        body : bytes
            Raw request body, exactly as received.

        Returns
        -------
        Tuple[int, str]
            Status code and response body.
        """
        subscription_id = self._extract_subscription_id(path)
        if not subscription_id:
            return 404, "Not found"

        envelope = NotificationEnvelope.from_headers(headers, body)
        try:
            result = self._verifier.verify(subscription_id, envelope)
        except VerificationError as e:
            return e.status_code, e.message

        subscription = result.subscription
        match envelope.message_type:
            case MessageType.CHALLENGE.value:
                return self._handle_challenge(subscription, body)
            case MessageType.NOTIFICATION.value:
                if result.duplicate:
                    return 200, ""
                self._registry.mark_enabled(subscription.id)
                self._dispatcher.dispatch(subscription, subscription.event_type, subscription.version, body)
                return 200, ""
            case MessageType.REVOCATION.value:
                if result.duplicate:
                    return 200, ""
                self._handle_revocation(subscription, body)
                return 200, ""
            case _:
                _LOG.warning(f"Unsupported message type {envelope.message_type!r} for subscription {subscription.id}")
                return 400, "Unsupported message type"

    def _extract_subscription_id(self, path: str) -> str:
        prefix = self._adapter.resolve_path_prefix()
        remainder = path
        if prefix and (remainder == prefix or remainder.startswith(prefix + "/")):
            remainder = remainder[len(prefix) :]
        segments = [segment for segment in remainder.split("/") if segment]
        if len(segments) != 1:
            return ""
        return segments[0]

    def _handle_challenge(self, subscription: Subscription, body: bytes) -> Tuple[int, str]:
        try:
            challenge = json.loads(body)["challenge"]
        except (ValueError, KeyError, TypeError):
            _LOG.warning(f"Malformed challenge for subscription {subscription.id}")
            return 400, "Malformed challenge"
        if not isinstance(challenge, str):
            return 400, "Malformed challenge"
        _LOG.info(f"Answering challenge for subscription {subscription.id}")
        return 200, challenge

    def _handle_revocation(self, subscription: Subscription, body: bytes) -> None:
        reason = "unknown"
        try:
            reason = json.loads(body)["subscription"]["status"]
        except (ValueError, KeyError, TypeError):
            _LOG.debug(f"Revocation for subscription {subscription.id} carries no status")

        revoked = self._registry.mark_revoked(subscription.id, reason)
        if revoked is not None:
            self._dispatcher.dispatch_revocation(revoked, reason)

    # ===== Convenience subscriptions =====

    async def subscribe_to_stream_online_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(EventSubEventType.STREAM_ONLINE, broadcaster_id, handler, on_revoke)

    async def subscribe_to_stream_offline_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(EventSubEventType.STREAM_OFFLINE, broadcaster_id, handler, on_revoke)

    async def subscribe_to_channel_update_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(EventSubEventType.CHANNEL_UPDATE, broadcaster_id, handler, on_revoke)

    async def subscribe_to_channel_follow_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(EventSubEventType.CHANNEL_FOLLOW, broadcaster_id, handler, on_revoke)

    async def subscribe_to_channel_subscription_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_SUBSCRIBE, broadcaster_id, handler, on_revoke
        )

    async def subscribe_to_channel_cheer_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(EventSubEventType.CHANNEL_CHEER, broadcaster_id, handler, on_revoke)

    async def subscribe_to_channel_ban_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(EventSubEventType.CHANNEL_BAN, broadcaster_id, handler, on_revoke)

    async def subscribe_to_channel_unban_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(EventSubEventType.CHANNEL_UNBAN, broadcaster_id, handler, on_revoke)

    async def subscribe_to_channel_raid_events_to(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        """Subscribe to raids targeting ``broadcaster_id``."""
        return await self.subscribe(
            EventSubEventType.CHANNEL_RAID.value,
            "1",
            {"to_broadcaster_user_id": str(broadcaster_id)},
            handler,
            on_revoke,
        )

    async def subscribe_to_channel_reward_add_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_REWARD_ADD, broadcaster_id, handler, on_revoke
        )

    async def subscribe_to_channel_reward_update_events(
        self,
        broadcaster_id: str,
        handler: EventHandlerFunc,
        reward_id: Optional[str] = None,
        on_revoke: Optional[RevocationHandlerFunc] = None,
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_REWARD_UPDATE, broadcaster_id, handler, on_revoke, reward_id=reward_id
        )

    async def subscribe_to_channel_reward_remove_events(
        self,
        broadcaster_id: str,
        handler: EventHandlerFunc,
        reward_id: Optional[str] = None,
        on_revoke: Optional[RevocationHandlerFunc] = None,
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_REWARD_REMOVE, broadcaster_id, handler, on_revoke, reward_id=reward_id
        )

    async def subscribe_to_channel_redemption_add_events(
        self,
        broadcaster_id: str,
        handler: EventHandlerFunc,
        reward_id: Optional[str] = None,
        on_revoke: Optional[RevocationHandlerFunc] = None,
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_REDEMPTION_ADD, broadcaster_id, handler, on_revoke, reward_id=reward_id
        )

    async def subscribe_to_channel_redemption_update_events(
        self,
        broadcaster_id: str,
        handler: EventHandlerFunc,
        reward_id: Optional[str] = None,
        on_revoke: Optional[RevocationHandlerFunc] = None,
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_REDEMPTION_UPDATE, broadcaster_id, handler, on_revoke, reward_id=reward_id
        )

    async def subscribe_to_channel_hype_train_begin_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_HYPE_TRAIN_BEGIN, broadcaster_id, handler, on_revoke
        )

    async def subscribe_to_channel_hype_train_progress_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_HYPE_TRAIN_PROGRESS, broadcaster_id, handler, on_revoke
        )

    async def subscribe_to_channel_hype_train_end_events(
        self, broadcaster_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self._subscribe_broadcaster(
            EventSubEventType.CHANNEL_HYPE_TRAIN_END, broadcaster_id, handler, on_revoke
        )

    async def subscribe_to_user_update_events(
        self, user_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self.subscribe(
            EventSubEventType.USER_UPDATE.value, "1", {"user_id": str(user_id)}, handler, on_revoke
        )

    async def subscribe_to_user_authorization_revoke_events(
        self, client_id: str, handler: EventHandlerFunc, on_revoke: Optional[RevocationHandlerFunc] = None
    ) -> str:
        return await self.subscribe(
            EventSubEventType.USER_AUTHORIZATION_REVOKE.value, "1", {"client_id": client_id}, handler, on_revoke
        )

    async def _subscribe_broadcaster(
        self,
        event_type: EventSubEventType,
        broadcaster_id: str,
        handler: EventHandlerFunc,
        on_revoke: Optional[RevocationHandlerFunc],
        reward_id: Optional[str] = None,
    ) -> str:
        condition: Dict[str, Any] = {"broadcaster_user_id": str(broadcaster_id)}
        if reward_id:
            condition["reward_id"] = reward_id
        return await self.subscribe(event_type.value, "1", condition, handler, on_revoke)
