"""Subscription registry.

Maps local subscription ids to :class:`~twitch_eventsub.model.Subscription`
objects, which also hold each subscription's signing secret. A registry is
owned by exactly one listener; there is no module-level instance.

State transitions
=================
- ``register`` stores a subscription as ``PENDING`` (last write wins)
- ``mark_enabled`` moves ``PENDING`` to ``ENABLED``
- ``mark_revoked`` moves any live subscription to ``REVOKED`` and removes it
- ``remove`` drops a subscription (explicit unsubscribe)
- ``roll_back`` undoes a ``register`` whose remote call failed

``REVOKED`` is terminal: a revoked subscription is no longer stored, so nothing
can move it back.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Final, List, Optional

from .model import Subscription, SubscriptionStatus

__all__: list[str] = ["SubscriptionRegistry"]

_LOG: Final[logging.Logger] = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Thread-safe store of live subscriptions keyed by local id."""

    def __init__(self) -> None:
        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def register(self, subscription: Subscription) -> None:
        """Insert ``subscription`` as pending, replacing any entry with the same id."""
        subscription.status = SubscriptionStatus.PENDING
        with self._lock:
            replaced = subscription.id in self._subscriptions
            self._subscriptions[subscription.id] = subscription
        if replaced:
            _LOG.info(f"Replaced existing registration for subscription {subscription.id}")
        else:
            _LOG.debug(f"Registered subscription {subscription.id} ({subscription.event_type})")

    def roll_back(self, replacement: Subscription, previous: Optional[Subscription]) -> bool:
        """Undo a ``register`` of ``replacement``.

        ``previous`` (the entry ``replacement`` overwrote, if any) is put back
        unchanged, keeping its secret, status and remote id. Nothing happens if
        the id no longer holds ``replacement``, e.g. because it was revoked or
        registered again meanwhile.

        Returns
        -------
        bool
            True if the registration was undone.
        """
        with self._lock:
            if self._subscriptions.get(replacement.id) is not replacement:
                return False
            if previous is None:
                del self._subscriptions[replacement.id]
            else:
                self._subscriptions[replacement.id] = previous
        _LOG.debug(f"Rolled back registration of subscription {replacement.id}")
        return True

    def attach_remote(self, subscription_id: str, remote_id: str) -> bool:
        with self._lock:
            subscription = self._subscriptions.get(subscription_id)
            if subscription is None:
                return False
            subscription.remote_id = remote_id
            return True

    def mark_enabled(self, subscription_id: str) -> bool:
        """Move a pending subscription to enabled.

        Returns
        -------
        bool
            True if the subscription transitioned, False if it was unknown or
            not pending.
        """
        with self._lock:
            subscription = self._subscriptions.get(subscription_id)
            if subscription is None or subscription.status is not SubscriptionStatus.PENDING:
                return False
            subscription.status = SubscriptionStatus.ENABLED
        _LOG.info(f"Subscription {subscription_id} is now enabled")
        return True

    def mark_revoked(self, subscription_id: str, reason: str) -> Optional[Subscription]:
        """Revoke and remove a subscription.

        The removal happens under the lock, so concurrent revocations of the
        same id yield the subscription to exactly one caller. That caller is
        responsible for invoking the revocation handler.
        """
        with self._lock:
            subscription = self._subscriptions.pop(subscription_id, None)
            if subscription is None:
                return None
            subscription.status = SubscriptionStatus.REVOKED
        _LOG.warning(f"Subscription {subscription_id} ({subscription.event_type}) revoked: {reason}")
        return subscription

    def resolve(self, subscription_id: str) -> Optional[Subscription]:
        with self._lock:
            return self._subscriptions.get(subscription_id)

    def find_by_remote_id(self, remote_id: str) -> Optional[Subscription]:
        with self._lock:
            for subscription in self._subscriptions.values():
                if subscription.remote_id == remote_id:
                    return subscription
            return None

    def remove(self, subscription_id: str) -> Optional[Subscription]:
        with self._lock:
            subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is not None:
            _LOG.debug(f"Removed subscription {subscription_id}")
        return subscription

    def subscriptions(self) -> List[Subscription]:
        """Return a snapshot of all live subscriptions."""
        with self._lock:
            return list(self._subscriptions.values())

    def __contains__(self, subscription_id: object) -> bool:
        with self._lock:
            return subscription_id in self._subscriptions

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
