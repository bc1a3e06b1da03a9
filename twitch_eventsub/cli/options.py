"""Command-line argument parsing for the EventSub listener.

Examples
--------
.. code-block:: python

    from twitch_eventsub.cli.options import _parse_args

    opts = _parse_args(["--transport", "env-port", "--hostname", "bot.example.com"])
    print(opts.transport, opts.hostname)
"""

from __future__ import annotations

import argparse

from twitch_eventsub.logging.config import add_logging_arguments
from twitch_eventsub.settings import TransportKind

from .models import ListenerCliOptions, SubscriptionTarget


def _parse_args(argv: list[str] | None = None) -> ListenerCliOptions:
    """Parse CLI args and build `ListenerCliOptions`.

    Parameters
    ----------
    argv : list[str] | None, optional
        Argument list to parse. If None, uses sys.argv.

    Returns
    -------
    ListenerCliOptions
        Validated immutable options for starting the listener.
    """
    parser = argparse.ArgumentParser(description="Run the Twitch EventSub webhook listener")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env in current directory)",
    )
    parser.add_argument(
        "--no-env-file",
        action="store_true",
        help="Disable loading from .env file",
    )
    parser.add_argument(
        "--transport",
        default=None,
        type=lambda value: value.strip().lower().replace("-", "_"),
        choices=[kind.value for kind in TransportKind],
        help="Connection adapter (default: EVENTSUB_TRANSPORT or env_port)",
    )
    parser.add_argument(
        "--hostname",
        default=None,
        help="Public hostname used in callback URLs (default: EVENTSUB_HOSTNAME)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on for the direct and reverse_proxy transports (default: EVENTSUB_PORT)",
    )
    parser.add_argument(
        "--path-prefix",
        default=None,
        help="Path prefix of the callback routes (default: EVENTSUB_PATH_PREFIX)",
    )
    parser.add_argument(
        "--subscribe",
        action="append",
        default=[],
        type=SubscriptionTarget.parse,
        dest="subscriptions",
        metavar="TYPE:VERSION:BROADCASTER_ID",
        help="Subscribe at startup, e.g. stream.online:1:1337 (repeatable)",
    )
    parser.add_argument(
        "--unsubscribe-on-exit",
        action="store_true",
        help="Delete the startup subscriptions when the listener exits",
    )

    # Add centralized logging arguments
    parser = add_logging_arguments(parser)

    return ListenerCliOptions.deserialize(parser.parse_args(argv))
