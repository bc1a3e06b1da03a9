"""Bounded cache of recently seen message ids.

The remote service delivers at least once, so the same message id can arrive
more than once, occasionally in parallel. :class:`DeduplicationCache` records
each id for a fixed time-to-live and answers "seen before?" atomically, so two
concurrent first deliveries of the same id cannot both pass.

Entries live in memory only; a restart forgets them.

Examples
--------
.. code-block:: python

    from twitch_eventsub.dedup import DeduplicationCache

    cache = DeduplicationCache(ttl=600, max_size=10_000)
    assert cache.seen("msg-1") is False  # first delivery, now recorded
    assert cache.seen("msg-1") is True   # retry
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Final

__all__: list[str] = ["DeduplicationCache"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


class DeduplicationCache:
    """Thread-safe TTL set of message ids with a maximum size.

    Parameters
    ----------
    ttl : float
        Seconds an id is remembered after it was first seen.
    max_size : int
        Maximum number of ids kept; the oldest ids are evicted first.
    clock : Callable[[], float], optional
        Monotonic clock, injectable for tests.
    """

    def __init__(self, ttl: float = 600.0, max_size: int = 10_000, clock: Callable[[], float] = time.monotonic):
        if ttl <= 0:
            raise ValueError("Deduplication TTL must be positive")
        if max_size < 1:
            raise ValueError("Deduplication cache size must be at least 1")
        self._ttl = ttl
        self._max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    def seen(self, message_id: str) -> bool:
        """Check and record ``message_id`` in one step.

        Returns
        -------
        bool
            True if the id was already recorded and has not expired,
            False if it is new (it is recorded before returning).
        """
        with self._lock:
            now = self._clock()
            self._purge_expired(now)

            expires_at = self._entries.get(message_id)
            if expires_at is not None:
                return True

            self._entries[message_id] = now + self._ttl
            while len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                _LOG.debug(f"Deduplication cache full, evicted message id {evicted}")
            return False

    def __contains__(self, message_id: object) -> bool:
        with self._lock:
            expires_at = self._entries.get(message_id)  # type: ignore[arg-type]
            return expires_at is not None and expires_at > self._clock()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _purge_expired(self, now: float) -> None:
        # Insertion order equals expiry order because the TTL is fixed.
        while self._entries:
            oldest_id, expires_at = next(iter(self._entries.items()))
            if expires_at > now:
                break
            del self._entries[oldest_id]
