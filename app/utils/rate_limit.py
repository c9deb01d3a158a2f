import threading
import time
from collections import deque
from typing import Callable, Dict


class SlidingWindowLimiter:
    """Limita operaciones por clave dentro de una ventana deslizante de tiempo.

    `allow()` registra la operación sólo si hay cupo. `remaining()` y
    `reset_at()` no consumen cupo; `hit()` registra sin preguntar, para
    contar sólo operaciones que terminaron bien. Las claves sin operaciones
    vigentes se descartan.
    """

    def __init__(self, max_ops: int, window: float, clock: Callable[[], float] = time.monotonic):
        if max_ops <= 0 or window <= 0:
            raise ValueError("max_ops y window deben ser positivos")
        self.max_ops = max_ops
        self.window = window
        self._clock = clock
        self._ops: Dict[str, deque] = {}
        self._lock = threading.Lock()

    def _recent(self, key: str, now: float) -> deque:
        ops = self._ops.get(key)
        if ops is None:
            return deque()
        while ops and now - ops[0] >= self.window:
            ops.popleft()
        if not ops:
            del self._ops[key]
        return ops

    def _push(self, key: str, now: float) -> None:
        self._ops.setdefault(key, deque()).append(now)

    def allow(self, key: str) -> bool:
        with self._lock:
            now = self._clock()
            if len(self._recent(key, now)) >= self.max_ops:
                return False
            self._push(key, now)
            return True

    def hit(self, key: str) -> None:
        with self._lock:
            now = self._clock()
            self._recent(key, now)
            self._push(key, now)

    def remaining(self, key: str) -> int:
        with self._lock:
            return max(0, self.max_ops - len(self._recent(key, self._clock())))

    def reset_at(self, key: str) -> float:
        """Momento (en el reloj del limiter) en que vence la operación más vieja; 0 si no hay."""
        with self._lock:
            ops = self._recent(key, self._clock())
            return ops[0] + self.window if ops else 0.0

    def retry_after(self, key: str) -> float:
        reset = self.reset_at(key)
        return max(0.0, reset - self._clock()) if reset else 0.0

    def clear(self, key=None) -> None:
        with self._lock:
            if key is None:
                self._ops.clear()
            else:
                self._ops.pop(key, None)

    def __len__(self):
        with self._lock:
            return len(self._ops)
