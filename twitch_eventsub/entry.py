"""Twitch EventSub listener entry point.

Runs a standalone listener that subscribes to the requested events and logs
every notification it receives.

Quick Start Examples
====================

**1. Listen on the port assigned by the platform (``$PORT``):**

    .. code-block:: bash

        EVENTSUB_HOSTNAME=bot.example.com PORT=8080 \\
            python -m twitch_eventsub --subscribe stream.online:1:1337

**2. Run behind a reverse proxy that forwards ``/eventsub``:**

    .. code-block:: bash

        python -m twitch_eventsub --transport reverse-proxy --hostname bot.example.com \\
            --port 8080 --path-prefix /eventsub --subscribe channel.follow:1:1337

**3. Terminate TLS directly:**

    .. code-block:: bash

        SSL_CERTFILE=cert.pem SSL_KEYFILE=key.pem \\
            python -m twitch_eventsub --transport direct --hostname bot.example.com

**4. Check liveness:**

    .. code-block:: bash

        curl http://localhost:8080/eventsub/health

Environment Variables
=====================
- **TWITCH_CLIENT_ID**: application client id (required)
- **TWITCH_ACCESS_TOKEN**: app access token (required)
- **EVENTSUB_TRANSPORT**: direct, env_port, reverse_proxy or middleware (default: env_port)
- **EVENTSUB_HOSTNAME**: public hostname used in callback URLs (required)
- **EVENTSUB_PATH_PREFIX**: callback path prefix
- **EVENTSUB_PORT**: listening port of the direct, reverse_proxy and middleware transports
- **SSL_CERTFILE** / **SSL_KEYFILE**: certificate pair of the direct transport

CLI options take precedence over these settings.
"""

import asyncio
import logging
import pathlib
from datetime import timedelta
from typing import Any, Dict, Final, Iterable, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from twitch_eventsub.adapters.base import UvicornServerRunner, bind_socket
from twitch_eventsub.adapters.loader import load_adapter
from twitch_eventsub.client.helix import HelixEventSubClient
from twitch_eventsub.errors import EventSubError
from twitch_eventsub.listener import EventSubListener
from twitch_eventsub.logging.config import setup_logging_from_args
from twitch_eventsub.settings import SettingModel, TransportKind, get_settings

from .cli.models import ListenerCliOptions, SubscriptionTarget
from .cli.options import _parse_args

__all__: list[str] = ["run_listener", "settings_overrides", "main"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


def settings_overrides(args: ListenerCliOptions) -> Dict[str, Any]:
    """Map the CLI options that were given onto settings fields."""
    overrides: Dict[str, Any] = {}
    if args.transport is not None:
        overrides["eventsub_transport"] = args.transport
    if args.hostname is not None:
        overrides["eventsub_hostname"] = args.hostname
    if args.port is not None:
        overrides["eventsub_port"] = args.port
    if args.path_prefix is not None:
        overrides["eventsub_path_prefix"] = args.path_prefix
    if args.log_level:
        overrides["log_level"] = args.log_level
    return overrides


def _log_event(target: SubscriptionTarget):
    def handler(event: Any) -> None:
        _LOG.info(f"[{target.event_type}] {event.model_dump_json()}")

    return handler


def _log_revocation(target: SubscriptionTarget):
    def handler(reason: str) -> None:
        _LOG.warning(f"Subscription to {target.event_type} for {target.broadcaster_id} revoked: {reason}")

    return handler


async def run_listener(
    settings: SettingModel,
    subscriptions: Iterable[SubscriptionTarget] = (),
    unsubscribe_on_exit: bool = False,
    stop_event: Optional[asyncio.Event] = None,
    api: Optional[Any] = None,
) -> None:
    """Start a listener, subscribe, and run until ``stop_event`` is set or the task is cancelled.

    Parameters
    ----------
    settings : SettingModel
        Loaded settings.
    subscriptions : Iterable[SubscriptionTarget]
        Subscriptions created after the listener started.
    unsubscribe_on_exit : bool
        Delete the created subscriptions on shutdown.
    stop_event : asyncio.Event, optional
        Set to stop the listener; otherwise it runs until cancelled.
    api : EventSubApi, optional
        REST collaborator; defaults to a :class:`HelixEventSubClient` built from settings.
    """
    owns_api = api is None
    if api is None:
        token = settings.twitch_access_token.get_secret_value() if settings.twitch_access_token else ""
        api = HelixEventSubClient(
            client_id=settings.twitch_client_id or "",
            access_token=token,
            base_url=settings.helix_base_url,
        )

    host_app: Optional[FastAPI] = None
    host_runner: Optional[UvicornServerRunner] = None
    if settings.eventsub_transport is TransportKind.MIDDLEWARE:
        host_app = FastAPI(title="Twitch EventSub Listener")

    listener = EventSubListener(
        api,
        load_adapter(settings, app=host_app),
        freshness_window=timedelta(seconds=settings.freshness_window_seconds),
        dedup_ttl=settings.dedup_ttl_seconds,
        dedup_max_size=settings.dedup_max_size,
    )

    created: List[str] = []
    try:
        await listener.start()
        if host_app is not None:
            host_runner = UvicornServerRunner(host_app)
            await host_runner.start(bind_socket("0.0.0.0", settings.eventsub_port))

        for target in subscriptions:
            subscription_id = await listener.subscribe(
                target.event_type,
                target.version,
                {"broadcaster_user_id": target.broadcaster_id},
                _log_event(target),
                on_revoke=_log_revocation(target),
            )
            created.append(subscription_id)

        await (stop_event or asyncio.Event()).wait()
    finally:
        if unsubscribe_on_exit:
            for subscription_id in created:
                if subscription_id not in listener.registry:
                    continue
                try:
                    await listener.unsubscribe(subscription_id)
                except EventSubError as e:
                    _LOG.error(f"Could not unsubscribe {subscription_id}: {e.message}")
        if host_runner is not None:
            await host_runner.stop()
        await listener.stop(timeout=5.0)
        if owns_api:
            await api.aclose()


def main(argv: Optional[list[str]] = None) -> None:
    """Run the EventSub listener as a standalone application.

    1. Parse command-line arguments
    2. Set up logging
    3. Load environment variables from the .env file
    4. Start the listener and create the requested subscriptions

    Parameters
    ----------
    argv : Optional[list[str]], optional
        Command-line arguments to parse. If None, uses sys.argv.
    """
    args = _parse_args(argv)

    # Use centralized logging configuration
    setup_logging_from_args(args)

    # Load environment variables from .env file if not disabled
    if not args.no_env_file:
        env_path = pathlib.Path(args.env_file)
        if env_path.exists():
            _LOG.info(f"Loading environment variables from {env_path.resolve()}")
            load_dotenv(dotenv_path=env_path, override=True)
        else:
            _LOG.warning(f"Environment file not found: {env_path.resolve()}")

    settings = get_settings(
        env_file=args.env_file,
        no_env_file=args.no_env_file,
        force_reload=True,
        **settings_overrides(args),
    )

    try:
        asyncio.run(
            run_listener(
                settings,
                subscriptions=args.subscriptions,
                unsubscribe_on_exit=args.unsubscribe_on_exit,
            )
        )
    except KeyboardInterrupt:
        _LOG.info("Interrupted, EventSub listener shut down")


if __name__ == "__main__":
    main()
