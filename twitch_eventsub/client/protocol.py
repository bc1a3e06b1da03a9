"""Interface of the EventSub REST collaborator.

The listener only needs to create, delete and list subscriptions. Any object
implementing :class:`EventSubApi` can be plugged in; the package ships
:class:`~twitch_eventsub.client.helix.HelixEventSubClient`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Protocol, runtime_checkable

from twitch_eventsub.model import RemoteSubscription, WebhookTransport

__all__: list[str] = ["EventSubApi"]


@runtime_checkable
class EventSubApi(Protocol):
    """Protocol for EventSub subscription management clients.

    Implementations raise :class:`~twitch_eventsub.errors.RemoteCallFailure`
    when the remote call fails.
    """

    async def create_subscription(
        self, event_type: str, version: str, condition: Dict[str, Any], transport: WebhookTransport
    ) -> RemoteSubscription:
        """Create a subscription and return it as reported by the service."""
        ...

    async def delete_subscription(self, subscription_id: str) -> None:
        """Delete a subscription by its remote id."""
        ...

    async def get_subscriptions(self) -> List[RemoteSubscription]:
        """List all subscriptions of the current client."""
        ...
