"""Reverse-proxy adapter: a loopback listener fed by a trusted upstream proxy.

The public endpoint belongs to the proxy (nginx, Caddy, Traefik, ...), which
terminates TLS and forwards to this listener. Requests are only accepted when
the immediate peer is the trusted proxy; the proxy's forwarding headers
(``X-Forwarded-For``, ``X-Forwarded-Host``) are then taken at face value for
logging the original client and public host.

.. code-block:: nginx

    location /eventsub/ {
        proxy_pass http://127.0.0.1:8080;
        proxy_set_header X-Forwarded-For $remote_addr;
        proxy_set_header X-Forwarded-Host $host;
    }
"""

from __future__ import annotations

import logging
from typing import Final, Optional

from fastapi import Request, Response, status
from fastapi.responses import PlainTextResponse

from .base import (
    RequestHandler,
    UvicornServerRunner,
    bind_socket,
    build_callback_router,
    create_callback_app,
    normalize_path_prefix,
)

__all__: list[str] = ["ReverseProxyAdapter"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


class ReverseProxyAdapter:
    """Receive callbacks forwarded by a reverse proxy.

    The public host is the configured ``hostname``, not the proxy's
    ``X-Forwarded-Host``: callback URLs are handed to the remote service when
    subscribing, before any forwarded request has arrived. Forwarding headers
    are only logged, and a ``X-Forwarded-Host`` that differs from ``hostname``
    is reported as a proxy misconfiguration.

    Parameters
    ----------
    hostname : str
        Public hostname served by the proxy.
    port : int, optional
        Local port the proxy forwards to (default: 8080).
    path_prefix : str, optional
        Public path prefix routed to this listener. Requests are accepted with
        or without the prefix, so the proxy may strip it.
    trusted_proxy : str, optional
        Address of the proxy, or ``*`` to trust any peer (default: ``127.0.0.1``).
    bind_host : str, optional
        Local interface to bind (default: ``127.0.0.1``).
    """

    def __init__(
        self,
        hostname: str,
        port: int = 8080,
        path_prefix: str = "",
        trusted_proxy: str = "127.0.0.1",
        bind_host: str = "127.0.0.1",
    ):
        self._hostname = hostname
        self._port = port
        self._path_prefix = normalize_path_prefix(path_prefix)
        self._trusted_proxy = trusted_proxy
        self._bind_host = bind_host
        self._runner: Optional[UvicornServerRunner] = None

    @property
    def bound_port(self) -> Optional[int]:
        return self._runner.bound_port if self._runner is not None else None

    def resolve_host(self) -> str:
        return self._hostname

    def resolve_path_prefix(self) -> str:
        return self._path_prefix

    def guard(self, request: Request) -> Optional[Response]:
        """Refuse requests that did not come through the trusted proxy."""
        peer = request.client.host if request.client else None
        if self._trusted_proxy != "*" and peer != self._trusted_proxy:
            _LOG.warning(f"Refused EventSub request from untrusted peer {peer}")
            return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)

        forwarded_host = request.headers.get("x-forwarded-host")
        if forwarded_host and forwarded_host != self._hostname:
            _LOG.warning(f"Proxy forwarded host {forwarded_host}, expected {self._hostname}")
        _LOG.debug(
            f"EventSub request via proxy {peer} for client {request.headers.get('x-forwarded-for', 'unknown')}"
        )
        return None

    async def start(self, handler: RequestHandler) -> None:
        sock = bind_socket(self._bind_host, self._port)
        app = create_callback_app(handler, self._path_prefix, guard=self.guard)
        if self._path_prefix:
            app.include_router(build_callback_router(handler, "", guard=self.guard))

        runner = UvicornServerRunner(app, proxy_headers=False)
        await runner.start(sock)
        self._runner = runner
        _LOG.info(
            f"Reverse proxy EventSub listener on {self._bind_host}:{runner.bound_port} "
            f"for https://{self._hostname}{self._path_prefix}"
        )

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.stop()
            self._runner = None
