"""Event dispatcher.

Turns the raw body of a verified notification into a typed event and hands it
to the subscription's handler.

Highlights
==========
- Decoding via a lookup table keyed by ``(event_type, version)``
- Unknown combinations raise :class:`~twitch_eventsub.errors.UnsupportedEventType`
  internally; they are logged and ignored
- Handlers may be sync or async; async results are awaited
- Handlers run as fire-and-forget tasks, so the HTTP acknowledgement never
  waits for them, and their failures are logged and isolated

Quick Example
=============
.. code-block:: python

    from twitch_eventsub.dispatcher import EventDispatcher
    from twitch_eventsub.events import EventSubEvent

    class PredictionBegin(EventSubEvent):
        id: str
        title: str

    dispatcher = EventDispatcher()
    dispatcher.register_decoder("channel.prediction.begin", "1", PredictionBegin)
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Final, Optional, Set, Type

from pydantic import ValidationError

from .errors import UnsupportedEventType
from .events import DEFAULT_DECODERS, DecoderTable, EventSubEvent
from .model import Subscription

__all__: list[str] = ["EventDispatcher"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


class EventDispatcher:
    """Decode verified notifications and invoke subscription handlers.

    Parameters
    ----------
    decoders : DecoderTable, optional
        Initial decoder table; defaults to a copy of
        :data:`~twitch_eventsub.events.DEFAULT_DECODERS`.
    """

    def __init__(self, decoders: Optional[DecoderTable] = None) -> None:
        self._decoders: DecoderTable = dict(DEFAULT_DECODERS if decoders is None else decoders)
        self._tasks: Set[asyncio.Task[None]] = set()

    def register_decoder(self, event_type: str, version: str, model: Type[EventSubEvent]) -> None:
        self._decoders[(str(event_type), str(version))] = model

    def decode(self, event_type: str, version: str, payload: Any) -> EventSubEvent:
        """Decode an ``event`` object into its typed model.

        Raises
        ------
        UnsupportedEventType
            If no decoder is registered for ``(event_type, version)``.
        pydantic.ValidationError
            If the payload does not match the model.
        """
        model = self._decoders.get((event_type, version))
        if model is None:
            raise UnsupportedEventType(event_type, version)
        return model.model_validate(payload)

    def dispatch(self, subscription: Subscription, event_type: str, version: str, raw_body: bytes) -> bool:
        """Decode ``raw_body`` and schedule the subscription handler.

        Returns
        -------
        bool
            True if a handler invocation was scheduled.
        """
        try:
            payload = json.loads(raw_body)
            event = self.decode(event_type, version, payload.get("event"))
        except UnsupportedEventType as e:
            _LOG.warning(f"{e.message}; ignoring notification for subscription {subscription.id}")
            return False
        except (ValueError, AttributeError, ValidationError) as e:
            _LOG.error(f"Could not decode {event_type} notification for subscription {subscription.id}: {e}")
            return False

        _LOG.debug(f"Dispatching {event_type} event to handler of subscription {subscription.id}")
        self._schedule(subscription.handler, event, description=f"{event_type} handler of {subscription.id}")
        return True

    def dispatch_revocation(self, subscription: Subscription, reason: str) -> bool:
        if subscription.revocation_handler is None:
            return False
        self._schedule(
            subscription.revocation_handler, reason, description=f"revocation handler of {subscription.id}"
        )
        return True

    @property
    def pending(self) -> int:
        """Number of handler invocations still running."""
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight handler invocations.

        Returns
        -------
        bool
            True if all invocations finished within ``timeout``.
        """
        if not self._tasks:
            return True
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            _LOG.warning(f"{len(still_running)} handler invocation(s) still running after {timeout}s")
        return not still_running

    def _schedule(self, fn: Callable[[Any], Any], argument: Any, description: str) -> None:
        task = asyncio.get_running_loop().create_task(self._invoke(fn, argument, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _invoke(fn: Callable[[Any], Any], argument: Any, description: str) -> None:
        try:
            result = fn(argument)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            _LOG.exception(f"Error in {description}: {e}")
