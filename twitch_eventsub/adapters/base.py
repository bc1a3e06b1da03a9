"""Connection adapter interface and shared HTTP glue.

A connection adapter decides how the listener is reachable from the network.
Each variant is an independent class implementing :class:`ConnectionAdapter`;
they share only the stateless helpers in this module and compose a
:class:`UvicornServerRunner` when they own a listening socket.

Variants
========
- :class:`~twitch_eventsub.adapters.direct.DirectConnectionAdapter`: own TLS listener
- :class:`~twitch_eventsub.adapters.env_port.EnvPortAdapter`: plain HTTP on a port from the environment
- :class:`~twitch_eventsub.adapters.reverse_proxy.ReverseProxyAdapter`: loopback listener behind a trusted proxy
- :class:`~twitch_eventsub.adapters.middleware.MiddlewareAdapter`: routes mounted into a host FastAPI app

Request handler contract
========================
The listener passes a coroutine function ``handler(path, headers, body)`` that
returns ``(status_code, response_body)``. Exceptions raised by the handler are
logged and answered with 500; they never take the server down.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import ssl
from typing import Awaitable, Callable, Final, Mapping, Optional, Protocol, Tuple, runtime_checkable

import uvicorn
from fastapi import APIRouter, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from twitch_eventsub.errors import BindFailure

__all__: list[str] = [
    "RequestHandler",
    "RequestGuard",
    "ConnectionAdapter",
    "normalize_path_prefix",
    "build_callback_router",
    "create_callback_app",
    "bind_socket",
    "load_ssl_context",
    "UvicornServerRunner",
]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)

RequestHandler = Callable[[str, Mapping[str, str], bytes], Awaitable[Tuple[int, str]]]
RequestGuard = Callable[[Request], Optional[Response]]


@runtime_checkable
class ConnectionAdapter(Protocol):
    """Capabilities shared by all connection adapters."""

    def resolve_host(self) -> str:
        """Externally reachable host (with port when not the default) for callback URLs."""
        ...

    def resolve_path_prefix(self) -> str:
        """Externally visible path prefix for callback URLs (``""`` or ``/segment``)."""
        ...

    async def start(self, handler: RequestHandler) -> None:
        """Begin accepting requests and forward each one to ``handler``.

        Raises
        ------
        BindFailure
            If the adapter cannot start accepting requests.
        """
        ...

    async def stop(self) -> None:
        """Stop accepting new requests; in-flight requests complete."""
        ...


def normalize_path_prefix(prefix: Optional[str]) -> str:
    """Normalize a prefix to ``""`` or ``/a/b`` (leading slash, no trailing slash)."""
    if not prefix:
        return ""
    stripped = prefix.strip().strip("/")
    return f"/{stripped}" if stripped else ""


def build_callback_router(
    handler: RequestHandler,
    path_prefix: str = "",
    guard: Optional[RequestGuard] = None,
) -> APIRouter:
    """Build the callback routes for a request handler.

    Routes
    ------
    - ``POST <prefix>/{subscription_id}``: forwarded to ``handler``
    - ``GET <prefix>/health``: liveness probe

    Parameters
    ----------
    handler : RequestHandler
        The listener's request handler.
    path_prefix : str
        Prefix the routes are served under.
    guard : RequestGuard, optional
        Called before ``handler``; a returned response short-circuits the request.
    """
    prefix = normalize_path_prefix(path_prefix)
    router = APIRouter()

    @router.get(f"{prefix}/health")
    async def health_check() -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "healthy", "service": "eventsub-listener"},
        )

    @router.post(f"{prefix}/{{subscription_id}}")
    async def eventsub_callback(request: Request, subscription_id: str) -> Response:
        if guard is not None:
            rejection = guard(request)
            if rejection is not None:
                return rejection

        body = await request.body()
        try:
            status_code, content = await handler(request.url.path, dict(request.headers), body)
        except Exception as e:
            _LOG.exception(f"Error handling EventSub request for {subscription_id}: {e}")
            return PlainTextResponse("Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return PlainTextResponse(content, status_code=status_code)

    return router


def create_callback_app(
    handler: RequestHandler, path_prefix: str = "", guard: Optional[RequestGuard] = None
) -> FastAPI:
    """Create a dedicated FastAPI app serving the callback routes."""
    app = FastAPI(
        title="Twitch EventSub Listener",
        description="Receives and verifies Twitch EventSub webhook notifications",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(build_callback_router(handler, path_prefix, guard=guard))
    return app


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening TCP socket.

    Raises
    ------
    BindFailure
        If the address cannot be bound (e.g. the port is in use).
    """
    try:
        sock = socket.create_server((host, port), reuse_port=False)
    except OSError as e:
        raise BindFailure(f"Could not bind {host}:{port}: {e}") from e
    sock.set_inheritable(True)
    return sock


def load_ssl_context(certfile: str, keyfile: str) -> ssl.SSLContext:
    """Load a certificate/key pair into a server-side TLS context.

    Raises
    ------
    BindFailure
        If the files are missing or do not form a valid pair.
    """
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    try:
        context.load_cert_chain(certfile=certfile, keyfile=keyfile)
    except (OSError, ssl.SSLError) as e:
        raise BindFailure(f"Could not load certificate {certfile} with key {keyfile}: {e}") from e
    return context


class UvicornServerRunner:
    """Run a FastAPI app on an already bound socket with uvicorn.

    Binding happens before uvicorn starts so bind errors surface as
    :class:`BindFailure` instead of uvicorn terminating the process.

    Examples
    --------
    .. code-block:: python

        runner = UvicornServerRunner(app, ssl_certfile="cert.pem", ssl_keyfile="key.pem")
        await runner.start(bind_socket("0.0.0.0", 443))
        ...
        await runner.stop()
    """

    def __init__(self, app: FastAPI, **config_kwargs: object) -> None:
        self._app = app
        self._config_kwargs = config_kwargs
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._socket: Optional[socket.socket] = None

    @property
    def bound_port(self) -> Optional[int]:
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    async def start(self, sock: socket.socket, startup_timeout: float = 10.0) -> None:
        if self._task is not None:
            raise RuntimeError("Server is already running")

        config = uvicorn.Config(app=self._app, log_config=None, **self._config_kwargs)  # type: ignore[arg-type]
        server = uvicorn.Server(config=config)
        self._socket = sock
        self._server = server
        self._task = asyncio.create_task(server.serve(sockets=[sock]))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + startup_timeout
        while not server.started:
            if self._task.done():
                error = self._task.exception() if not self._task.cancelled() else None
                self._reset()
                raise BindFailure(f"Server failed to start: {error}")
            if loop.time() > deadline:
                await self.stop()
                raise BindFailure(f"Server did not start within {startup_timeout}s")
            await asyncio.sleep(0.05)
        _LOG.info(f"Serving EventSub callbacks on port {self.bound_port}")

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        try:
            await self._task
        except Exception as e:
            _LOG.error(f"Server stopped with error: {e}")
        finally:
            if self._socket is not None:
                self._socket.close()
            self._reset()

    def _reset(self) -> None:
        self._server = None
        self._task = None
        self._socket = None
