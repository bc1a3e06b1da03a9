"""Middleware adapter: callback routes mounted into a host FastAPI app.

The adapter owns no server. The host application keeps full control of its
server, TLS and lifespan; the adapter contributes the callback routes under
its path prefix.

.. code-block:: python

    from fastapi import FastAPI
    from twitch_eventsub.adapters import MiddlewareAdapter
    from twitch_eventsub.listener import EventSubListener

    app = FastAPI()
    adapter = MiddlewareAdapter(hostname="bot.example.com", path_prefix="/eventsub", app=app)
    listener = EventSubListener(api, adapter)

    @app.on_event("startup")
    async def start_listener():
        await listener.start()
"""

from __future__ import annotations

import logging
from typing import Final, Mapping, Optional, Tuple

from fastapi import APIRouter, FastAPI, Request, Response, status
from fastapi.responses import PlainTextResponse

from .base import RequestHandler, build_callback_router, normalize_path_prefix

__all__: list[str] = ["MiddlewareAdapter"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


class MiddlewareAdapter:
    """Expose the callback routes for mounting into an existing app.

    Parameters
    ----------
    hostname : str
        Public hostname of the host application.
    path_prefix : str, optional
        Prefix the routes are mounted under (default: ``/eventsub``).
    app : FastAPI, optional
        Host application; when given, routes are added on ``start()``.
        Otherwise call :meth:`apply` or include :attr:`router` yourself.
    """

    def __init__(self, hostname: str, path_prefix: str = "/eventsub", app: Optional[FastAPI] = None):
        self._hostname = hostname
        self._path_prefix = normalize_path_prefix(path_prefix)
        self._app = app
        self._router: Optional[APIRouter] = None
        self._handler: Optional[RequestHandler] = None
        self._accepting = False

    @property
    def router(self) -> APIRouter:
        """The callback routes; only available after ``start()``."""
        if self._router is None:
            raise RuntimeError("The listener must be started before its routes can be mounted.")
        return self._router

    def resolve_host(self) -> str:
        return self._hostname

    def resolve_path_prefix(self) -> str:
        return self._path_prefix

    def apply(self, app: FastAPI) -> None:
        """Mount the callback routes into ``app``."""
        app.include_router(self.router)
        _LOG.info(f"Mounted EventSub callback routes at {self._path_prefix or '/'}")

    async def start(self, handler: RequestHandler) -> None:
        self._handler = handler
        self._accepting = True
        if self._router is None:
            self._router = build_callback_router(self._forward, self._path_prefix, guard=self._guard)
            if self._app is not None:
                self.apply(self._app)

    async def stop(self) -> None:
        # Routes cannot be unmounted from a running app; refuse new requests instead.
        self._accepting = False

    async def _forward(self, path: str, headers: Mapping[str, str], body: bytes) -> Tuple[int, str]:
        if self._handler is None:
            raise RuntimeError("Middleware adapter has not been started")
        return await self._handler(path, headers, body)

    def _guard(self, request: Request) -> Optional[Response]:
        if self._accepting:
            return None
        return PlainTextResponse("EventSub listener stopped", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
