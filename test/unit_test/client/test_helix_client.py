"""Unit tests for the Helix EventSub REST client."""

import json

import httpx
import pytest

from twitch_eventsub.client import EventSubApi, HelixEventSubClient
from twitch_eventsub.errors import RemoteCallFailure
from twitch_eventsub.model import WebhookTransport

CREATED = {
    "data": [
        {
            "id": "26b1c993-bfcf-44d9-b876-379dacafe75a",
            "status": "webhook_callback_verification_pending",
            "type": "stream.online",
            "version": "1",
            "condition": {"broadcaster_user_id": "1337"},
            "created_at": "2020-11-10T14:32:18.730260295Z",
            "transport": {"method": "webhook", "callback": "https://bot.example.com/eventsub/stream.online.v1.1337"},
            "cost": 1,
        }
    ],
    "total": 1,
    "total_cost": 1,
    "max_total_cost": 10000,
}


def _client(handler) -> HelixEventSubClient:
    return HelixEventSubClient(
        client_id="client-id",
        access_token="app-token",
        base_url="https://helix.test/helix",
        transport=httpx.MockTransport(handler),
    )


class TestHelixEventSubClient:
    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            HelixEventSubClient(client_id="", access_token="token")
        with pytest.raises(ValueError):
            HelixEventSubClient(client_id="id", access_token="")

    def test_satisfies_protocol(self):
        assert isinstance(_client(lambda request: httpx.Response(200)), EventSubApi)

    @pytest.mark.asyncio
    async def test_create_subscription(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202, json=CREATED)

        async with _client(handler) as client:
            created = await client.create_subscription(
                "stream.online",
                "1",
                {"broadcaster_user_id": "1337"},
                WebhookTransport(callback="https://bot.example.com/eventsub/x", secret="s3cr3t-value"),
            )

        request = requests[0]
        assert request.method == "POST"
        assert request.url == "https://helix.test/helix/eventsub/subscriptions"
        assert request.headers["Client-Id"] == "client-id"
        assert request.headers["Authorization"] == "Bearer app-token"
        assert json.loads(request.content) == {
            "type": "stream.online",
            "version": "1",
            "condition": {"broadcaster_user_id": "1337"},
            "transport": {"method": "webhook", "callback": "https://bot.example.com/eventsub/x", "secret": "s3cr3t-value"},
        }
        assert created.id == "26b1c993-bfcf-44d9-b876-379dacafe75a"
        assert created.status == "webhook_callback_verification_pending"
        assert created.callback == "https://bot.example.com/eventsub/stream.online.v1.1337"

    @pytest.mark.asyncio
    async def test_create_with_empty_data(self):
        async with _client(lambda request: httpx.Response(202, json={"data": []})) as client:
            with pytest.raises(RemoteCallFailure):
                await client.create_subscription(
                    "stream.online", "1", {}, WebhookTransport(callback="https://x/y", secret="s3cr3t-value")
                )

    @pytest.mark.asyncio
    async def test_error_status_is_reported(self):
        def handler(request):
            return httpx.Response(409, json={"error": "Conflict", "status": 409, "message": "subscription already exists"})

        async with _client(handler) as client:
            with pytest.raises(RemoteCallFailure) as exc_info:
                await client.create_subscription(
                    "stream.online", "1", {}, WebhookTransport(callback="https://x/y", secret="s3cr3t-value")
                )

        assert exc_info.value.remote_status == 409
        assert "already exists" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_network_error_is_reported(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(RemoteCallFailure) as exc_info:
                await client.delete_subscription("abc")

        assert exc_info.value.remote_status is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_delete_subscription(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(204)

        async with _client(handler) as client:
            await client.delete_subscription("26b1c993")

        assert requests[0].method == "DELETE"
        assert requests[0].url.params["id"] == "26b1c993"

    @pytest.mark.asyncio
    async def test_get_subscriptions_follows_pagination(self):
        pages = {
            None: {"data": [dict(CREATED["data"][0], id="a", status="enabled")], "pagination": {"cursor": "next"}},
            "next": {"data": [dict(CREATED["data"][0], id="b")], "pagination": {}},
        }

        def handler(request):
            return httpx.Response(200, json=pages[request.url.params.get("after")])

        async with _client(handler) as client:
            subscriptions = await client.get_subscriptions()

        assert [(s.id, s.status) for s in subscriptions] == [
            ("a", "enabled"),
            ("b", "webhook_callback_verification_pending"),
        ]
