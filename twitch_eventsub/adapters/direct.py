"""Direct connection adapter: the listener terminates TLS itself.

Use this when the process is reachable from the internet on its own port and
holds a certificate for the public hostname.

.. code-block:: python

    adapter = DirectConnectionAdapter(
        hostname="eventsub.example.com",
        port=443,
        ssl_certfile="/etc/letsencrypt/live/eventsub.example.com/fullchain.pem",
        ssl_keyfile="/etc/letsencrypt/live/eventsub.example.com/privkey.pem",
    )
"""

from __future__ import annotations

import logging
from typing import Final, Optional

from .base import (
    RequestHandler,
    UvicornServerRunner,
    bind_socket,
    create_callback_app,
    load_ssl_context,
    normalize_path_prefix,
)

__all__: list[str] = ["DirectConnectionAdapter"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


class DirectConnectionAdapter:
    """Serve callbacks over HTTPS on a configured port.

    Parameters
    ----------
    hostname : str
        Public hostname the certificate is issued for.
    port : int
        Port to listen on (default: 443).
    ssl_certfile : str
        Path to the PEM certificate chain.
    ssl_keyfile : str
        Path to the PEM private key.
    path_prefix : str, optional
        Path prefix for the callback routes.
    bind_host : str, optional
        Interface to bind (default: all interfaces).
    """

    def __init__(
        self,
        hostname: str,
        ssl_certfile: str,
        ssl_keyfile: str,
        port: int = 443,
        path_prefix: str = "",
        bind_host: str = "0.0.0.0",
    ):
        self._hostname = hostname
        self._port = port
        self._ssl_certfile = ssl_certfile
        self._ssl_keyfile = ssl_keyfile
        self._path_prefix = normalize_path_prefix(path_prefix)
        self._bind_host = bind_host
        self._runner: Optional[UvicornServerRunner] = None

    @property
    def bound_port(self) -> Optional[int]:
        return self._runner.bound_port if self._runner is not None else None

    def resolve_host(self) -> str:
        return self._hostname if self._port == 443 else f"{self._hostname}:{self._port}"

    def resolve_path_prefix(self) -> str:
        return self._path_prefix

    async def start(self, handler: RequestHandler) -> None:
        # Fails fast on an unusable certificate before the port is taken.
        load_ssl_context(self._ssl_certfile, self._ssl_keyfile)
        sock = bind_socket(self._bind_host, self._port)

        runner = UvicornServerRunner(
            create_callback_app(handler, self._path_prefix),
            ssl_certfile=self._ssl_certfile,
            ssl_keyfile=self._ssl_keyfile,
        )
        await runner.start(sock)
        self._runner = runner
        _LOG.info(f"Direct EventSub listener started for https://{self.resolve_host()}{self._path_prefix}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.stop()
            self._runner = None
