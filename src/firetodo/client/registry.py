from __future__ import annotations

import logging
from typing import List

from ..store import Subscription

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class ListenerRegistry:
    """
    Every live subscription opened under one signed-in session.

    Owned by the session controller and handed to whatever opens
    subscriptions. `close_all()` must run on sign-out so no stream keeps
    delivering into a discarded session.
    """

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def register(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    def discard(self, subscription: Subscription) -> None:
        """Forget a handle that was closed on its own."""
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def close_all(self) -> int:
        """Close and forget every registered subscription. Returns how many were open."""
        subscriptions, self._subscriptions = self._subscriptions, []
        closed = 0
        for subscription in subscriptions:
            if not subscription.closed:
                subscription.unsubscribe()
                closed += 1
        if closed:
            logger.debug("Closed %d listener(s)", closed)
        return closed
