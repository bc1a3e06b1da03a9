"""Connection adapters: how the listener is exposed to the network.

All variants implement :class:`~twitch_eventsub.adapters.base.ConnectionAdapter`.
"""

from .base import ConnectionAdapter, RequestHandler
from .direct import DirectConnectionAdapter
from .env_port import EnvPortAdapter
from .middleware import MiddlewareAdapter
from .reverse_proxy import ReverseProxyAdapter

__all__ = [
    "ConnectionAdapter",
    "RequestHandler",
    "DirectConnectionAdapter",
    "EnvPortAdapter",
    "MiddlewareAdapter",
    "ReverseProxyAdapter",
]
