"""Environment-port adapter: plain HTTP on a port taken from the environment.

Fits platforms that assign the port through an environment variable and
terminate TLS in front of the process (Heroku, Cloud Run, most PaaS routers).
"""

from __future__ import annotations

import logging
import os
from typing import Final, Optional

from twitch_eventsub.errors import BindFailure

from .base import RequestHandler, UvicornServerRunner, bind_socket, create_callback_app, normalize_path_prefix

__all__: list[str] = ["EnvPortAdapter"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


class EnvPortAdapter:
    """Serve callbacks over plain HTTP on ``$<variable_name>``.

    Parameters
    ----------
    hostname : str
        Public hostname of the TLS-terminating router in front of the process.
    variable_name : str, optional
        Environment variable holding the port (default: ``PORT``).
    path_prefix : str, optional
        Path prefix for the callback routes.
    """

    def __init__(self, hostname: str, variable_name: str = "PORT", path_prefix: str = ""):
        self._hostname = hostname
        self._variable_name = variable_name
        self._path_prefix = normalize_path_prefix(path_prefix)
        self._runner: Optional[UvicornServerRunner] = None

    @property
    def bound_port(self) -> Optional[int]:
        return self._runner.bound_port if self._runner is not None else None

    def resolve_host(self) -> str:
        return self._hostname

    def resolve_path_prefix(self) -> str:
        return self._path_prefix

    def resolve_port(self) -> int:
        """Read the port from the environment.

        Raises
        ------
        BindFailure
            If the variable is unset or not a valid port number.
        """
        raw = os.environ.get(self._variable_name)
        if raw is None or not raw.strip():
            raise BindFailure(f"Environment variable {self._variable_name} is not set")
        try:
            port = int(raw)
        except ValueError:
            raise BindFailure(f"Environment variable {self._variable_name} is not a port number: {raw!r}")
        if not 0 <= port <= 65535:
            raise BindFailure(f"Environment variable {self._variable_name} is out of range: {port}")
        return port

    async def start(self, handler: RequestHandler) -> None:
        sock = bind_socket("0.0.0.0", self.resolve_port())
        runner = UvicornServerRunner(create_callback_app(handler, self._path_prefix))
        await runner.start(sock)
        self._runner = runner
        _LOG.info(f"EventSub listener started on port {runner.bound_port} for https://{self._hostname}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.stop()
            self._runner = None
