import logging
import threading
import time
from typing import Any, Callable, Hashable, Optional, Tuple, Type

logger = logging.getLogger(__name__)

_MISSING = object()


class TTLCache:
    """Cache con vencimiento por entrada y tope de entradas (FIFO al llenarse).

    Una entrada vencida no se sirve por `get()`, pero se conserva hasta
    `invalidate()` o hasta que la desplace otra: `get_or_load` la devuelve
    si el loader falla con alguno de los errores de `fallback_on`.
    """

    def __init__(self, ttl: float = 30.0, max_entries: int = 256, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._store = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            item = self._store.get(key)
            if item is None or item["exp"] <= self._clock():
                return default
            return item["value"]

    def get_stale(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            item = self._store.get(key)
            return default if item is None else item["value"]

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            if key not in self._store and len(self._store) >= self.max_entries:
                self._store.pop(next(iter(self._store)))
            self._store[key] = {"value": value, "exp": self._clock() + (self.ttl if ttl is None else ttl)}

    def get_or_load(self, key: Hashable, loader: Callable[[], Any],
                    fallback_on: Tuple[Type[BaseException], ...] = ()) -> Any:
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        try:
            value = loader()
        except fallback_on:
            stale = self.get_stale(key, _MISSING)
            if stale is _MISSING:
                raise
            logger.warning("loader failed, serving stale entry key=%s", key)
            return stale
        self.set(key, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        with self._lock:
            if key is None:
                self._store.clear()
            else:
                self._store.pop(key, None)

    def __len__(self):
        with self._lock:
            return len(self._store)
