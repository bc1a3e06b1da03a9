"""Build the configured connection adapter from settings.

.. code-block:: python

    from twitch_eventsub.adapters.loader import load_adapter
    from twitch_eventsub.settings import get_settings

    adapter = load_adapter(get_settings())
"""

from __future__ import annotations

import logging
from typing import Final, Optional

from fastapi import FastAPI

from twitch_eventsub.settings import SettingModel, TransportKind

from .base import ConnectionAdapter
from .direct import DirectConnectionAdapter
from .env_port import EnvPortAdapter
from .middleware import MiddlewareAdapter
from .reverse_proxy import ReverseProxyAdapter

__all__: list[str] = ["load_adapter"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


def load_adapter(settings: SettingModel, app: Optional[FastAPI] = None) -> ConnectionAdapter:
    """Create the adapter selected by ``settings.eventsub_transport``.

    Parameters
    ----------
    settings : SettingModel
        Loaded settings.
    app : FastAPI, optional
        Host application, only used by the middleware transport.

    Raises
    ------
    ValueError
        If a setting required by the selected transport is missing.
    """
    hostname = settings.eventsub_hostname
    if not hostname:
        raise ValueError("EVENTSUB_HOSTNAME must be set to build callback URLs")

    transport = settings.eventsub_transport
    _LOG.info(f"Using {transport.value} connection adapter for host {hostname}")

    match transport:
        case TransportKind.DIRECT:
            if not settings.ssl_certfile or not settings.ssl_keyfile:
                raise ValueError("SSL_CERTFILE and SSL_KEYFILE are required for the direct transport")
            return DirectConnectionAdapter(
                hostname=hostname,
                port=settings.eventsub_port,
                ssl_certfile=settings.ssl_certfile,
                ssl_keyfile=settings.ssl_keyfile,
                path_prefix=settings.eventsub_path_prefix,
            )
        case TransportKind.ENV_PORT:
            return EnvPortAdapter(
                hostname=hostname,
                variable_name=settings.eventsub_port_env_var,
                path_prefix=settings.eventsub_path_prefix,
            )
        case TransportKind.REVERSE_PROXY:
            return ReverseProxyAdapter(
                hostname=hostname,
                port=settings.eventsub_port,
                path_prefix=settings.eventsub_path_prefix,
                trusted_proxy=settings.trusted_proxy_host,
            )
        case TransportKind.MIDDLEWARE:
            return MiddlewareAdapter(
                hostname=hostname,
                path_prefix=settings.eventsub_path_prefix or "/eventsub",
                app=app,
            )
        case _:
            raise ValueError(f"Unknown transport: {transport}")
