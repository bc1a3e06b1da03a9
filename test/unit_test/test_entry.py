"""Unit tests for the listener entry point."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from twitch_eventsub.cli.models import ListenerCliOptions, SubscriptionTarget
from twitch_eventsub.entry import main, run_listener, settings_overrides
from twitch_eventsub.settings import SettingModel, TransportKind

TARGET = SubscriptionTarget(event_type="stream.online", version="1", broadcaster_id="1337")


def _settings(**kwargs) -> SettingModel:
    kwargs.setdefault("eventsub_hostname", "bot.example.com")
    return SettingModel(_env_file=None, **kwargs)


def _stopped() -> asyncio.Event:
    event = asyncio.Event()
    event.set()
    return event


class TestSettingsOverrides:
    def test_only_given_options_override(self):
        assert settings_overrides(ListenerCliOptions()) == {"log_level": "INFO"}

    def test_all_options(self):
        opts = ListenerCliOptions(transport="direct", hostname="h.example.com", port=8443, path_prefix="/x")
        assert settings_overrides(opts) == {
            "eventsub_transport": TransportKind.DIRECT,
            "eventsub_hostname": "h.example.com",
            "eventsub_port": 8443,
            "eventsub_path_prefix": "/x",
            "log_level": "INFO",
        }


class TestRunListener:
    @pytest.mark.asyncio
    async def test_subscribes_and_keeps_subscriptions(self, monkeypatch, fake_api):
        monkeypatch.setenv("PORT", "0")

        await run_listener(_settings(), subscriptions=[TARGET], stop_event=_stopped(), api=fake_api)

        event_type, version, condition, transport = fake_api.created[0]
        assert (event_type, version, condition) == ("stream.online", "1", {"broadcaster_user_id": "1337"})
        assert transport.callback == "https://bot.example.com/stream.online.v1.broadcaster_user_id-1337"
        assert fake_api.deleted == []

    @pytest.mark.asyncio
    async def test_unsubscribe_on_exit(self, monkeypatch, fake_api):
        monkeypatch.setenv("PORT", "0")

        await run_listener(
            _settings(), subscriptions=[TARGET], unsubscribe_on_exit=True, stop_event=_stopped(), api=fake_api
        )

        assert fake_api.deleted == ["remote-1"]

    @pytest.mark.asyncio
    async def test_middleware_transport_serves_host_app(self, fake_api):
        settings = _settings(eventsub_transport="middleware", eventsub_port=0)

        await run_listener(settings, subscriptions=[TARGET], stop_event=_stopped(), api=fake_api)

        callback = fake_api.created[0][3].callback
        assert callback == "https://bot.example.com/eventsub/stream.online.v1.broadcaster_user_id-1337"

    @pytest.mark.asyncio
    async def test_builds_helix_client_from_settings(self, monkeypatch):
        monkeypatch.setenv("PORT", "0")
        client = MagicMock()
        client.aclose = AsyncMock()

        with patch("twitch_eventsub.entry.HelixEventSubClient", return_value=client) as mock_client_cls:
            await run_listener(
                _settings(twitch_client_id="client-id", twitch_access_token="app-token"), stop_event=_stopped()
            )

        mock_client_cls.assert_called_once_with(
            client_id="client-id", access_token="app-token", base_url="https://api.twitch.tv/helix"
        )
        client.aclose.assert_awaited_once()


class TestMain:
    @pytest.mark.parametrize(
        "argv, env_file_exists, expect_dotenv",
        [
            ([], True, True),
            ([], False, False),
            (["--no-env-file"], True, False),
            (["--env-file", "custom.env"], True, True),
        ],
    )
    def test_main(self, argv, env_file_exists, expect_dotenv):
        with (
            patch("twitch_eventsub.entry.setup_logging_from_args") as mock_setup_logging,
            patch("twitch_eventsub.entry.load_dotenv") as mock_load_dotenv,
            patch("twitch_eventsub.entry.get_settings") as mock_get_settings,
            patch("twitch_eventsub.entry.run_listener", new_callable=AsyncMock) as mock_run_listener,
            patch("pathlib.Path.exists", return_value=env_file_exists),
        ):
            main(argv + ["--subscribe", "stream.online:1:1337", "--hostname", "bot.example.com"])

        mock_setup_logging.assert_called_once()
        assert mock_load_dotenv.called is expect_dotenv
        assert mock_get_settings.call_args.kwargs["eventsub_hostname"] == "bot.example.com"
        assert mock_get_settings.call_args.kwargs["force_reload"] is True
        mock_run_listener.assert_awaited_once()
        assert mock_run_listener.call_args.kwargs["subscriptions"] == [TARGET]

    def test_keyboard_interrupt(self):
        with (
            patch("twitch_eventsub.entry.setup_logging_from_args"),
            patch("twitch_eventsub.entry.get_settings"),
            patch("twitch_eventsub.entry.run_listener", new_callable=AsyncMock, side_effect=KeyboardInterrupt),
        ):
            main(["--no-env-file"])
