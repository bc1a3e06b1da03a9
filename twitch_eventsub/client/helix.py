"""Helix EventSub REST client.

A small async client for the ``eventsub/subscriptions`` endpoints of the
Twitch Helix API, built on :class:`httpx.AsyncClient`. EventSub webhook
subscriptions require an app access token.

Usage Examples
==============

.. code-block:: python

    import asyncio
    from twitch_eventsub.client.helix import HelixEventSubClient
    from twitch_eventsub.model import WebhookTransport

    async def main():
        async with HelixEventSubClient(client_id="abc", access_token="app-token") as api:
            created = await api.create_subscription(
                "stream.online",
                "1",
                {"broadcaster_user_id": "1337"},
                WebhookTransport(callback="https://example.com/eventsub/x", secret="s3cr3t-value"),
            )
            print(created.id, created.status)
            await api.delete_subscription(created.id)

    asyncio.run(main())

Environment Variables
=====================
- **TWITCH_CLIENT_ID**: application client id (see :mod:`twitch_eventsub.settings`)
- **TWITCH_ACCESS_TOKEN**: app access token
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Final, List, Optional

import httpx

from twitch_eventsub.errors import RemoteCallFailure
from twitch_eventsub.model import RemoteSubscription, WebhookTransport

__all__: list[str] = ["HelixEventSubClient", "DEFAULT_HELIX_BASE_URL"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)

DEFAULT_HELIX_BASE_URL: Final[str] = "https://api.twitch.tv/helix"
_SUBSCRIPTIONS_PATH: Final[str] = "eventsub/subscriptions"


class HelixEventSubClient:
    """Manage EventSub subscriptions through the Helix REST API.

    Parameters
    ----------
    client_id : str
        The application's client id, sent as ``Client-Id``.
    access_token : str
        App access token, sent as a bearer token.
    base_url : str, optional
        Helix base URL (default: ``https://api.twitch.tv/helix``).
    timeout : float, optional
        Request timeout in seconds (default: 30).
    transport : httpx.AsyncBaseTransport, optional
        Custom httpx transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        client_id: str,
        access_token: str,
        base_url: str = DEFAULT_HELIX_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not client_id or not access_token:
            raise ValueError(
                "Twitch credentials not found. Provide client_id and access_token or set "
                "the TWITCH_CLIENT_ID/TWITCH_ACCESS_TOKEN environment variables."
            )
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers={"Client-Id": client_id, "Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "HelixEventSubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_subscription(
        self, event_type: str, version: str, condition: Dict[str, Any], transport: WebhookTransport
    ) -> RemoteSubscription:
        """Create a subscription; the service answers with the new subscription."""
        body = {
            "type": event_type,
            "version": version,
            "condition": condition,
            "transport": transport.to_dict(),
        }
        data = await self._call("POST", _SUBSCRIPTIONS_PATH, json=body)
        entries = data.get("data") or []
        if not entries:
            raise RemoteCallFailure(f"Create subscription for {event_type} returned no subscription")
        created = RemoteSubscription.from_payload(entries[0])
        _LOG.info(f"Created remote subscription {created.id} for {event_type} (status: {created.status})")
        return created

    async def delete_subscription(self, subscription_id: str) -> None:
        await self._call("DELETE", _SUBSCRIPTIONS_PATH, params={"id": subscription_id})
        _LOG.info(f"Deleted remote subscription {subscription_id}")

    async def get_subscriptions(self) -> List[RemoteSubscription]:
        """List all subscriptions, following pagination cursors."""
        subscriptions: List[RemoteSubscription] = []
        cursor: Optional[str] = None
        while True:
            params = {"after": cursor} if cursor else None
            data = await self._call("GET", _SUBSCRIPTIONS_PATH, params=params)
            subscriptions.extend(RemoteSubscription.from_payload(entry) for entry in data.get("data") or [])
            cursor = (data.get("pagination") or {}).get("cursor")
            if not cursor:
                return subscriptions

    async def _call(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            _LOG.error(f"Helix request {method} {path} failed: {e}")
            raise RemoteCallFailure(f"Helix request {method} {path} failed: {e}") from e

        if response.is_error:
            _LOG.error(f"Helix request {method} {path} returned {response.status_code}: {response.text}")
            raise RemoteCallFailure(
                f"Helix request {method} {path} returned {response.status_code}: {response.text}",
                remote_status=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()
