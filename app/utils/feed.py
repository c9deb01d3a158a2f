import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    topic: str  # products | register | sales
    action: str  # created | updated | deleted | opened | closed
    key: Any
    data: Dict[str, Any]


class Subscription:
    def __init__(self, feed: "ChangeFeed", topic: str, callback: Callable[[ChangeEvent], None]):
        self._feed = feed
        self.topic = topic
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False


class ChangeFeed:
    """Suscripciones en proceso a cambios confirmados (post-commit)."""

    def __init__(self):
        self._subs: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Callable[[ChangeEvent], None]) -> Subscription:
        sub = Subscription(self, topic, callback)
        with self._lock:
            self._subs.setdefault(topic, []).append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.topic, [])
            if sub in subs:
                subs.remove(sub)

    def publish(self, topic: str, action: str, key: Any = None, **data) -> ChangeEvent:
        event = ChangeEvent(topic=topic, action=action, key=key, data=data)
        with self._lock:
            subs = list(self._subs.get(topic, []))
        for sub in subs:
            try:
                sub.callback(event)
            except Exception:
                # un suscriptor roto no debe tumbar la escritura ya confirmada
                logger.exception("subscriber failed topic=%s action=%s", topic, action)
        return event

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subs.get(topic, []))
