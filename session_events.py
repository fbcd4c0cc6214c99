from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionEnded:
    player_id: int
    total_score: int
    session_id: int

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "total_score": self.total_score,
            "session_id": self.session_id,
        }


Listener = Callable[[SessionEnded], None]


class Subscription:
    def __init__(self, channel: "SessionEventChannel", listener: Listener):
        self._channel = channel
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self._channel._remove(self)
        self.active = False


class SessionEventChannel:
    """Synchronous publish/subscribe for the session-ended topic.

    Listeners run in the order they subscribed. One failing listener is logged
    and skipped; the rest still run and publish() never raises.
    """

    def __init__(self):
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        subscription = Subscription(self, listener)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: SessionEnded) -> int:
        with self._lock:
            subscriptions = list(self._subscriptions)
        delivered = 0
        for subscription in subscriptions:
            try:
                subscription.listener(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Session-ended listener failed for session %s", event.session_id
                )
        return delivered

    def listener_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
