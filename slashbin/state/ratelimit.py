import threading, time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

@dataclass
class RateWindow:
    stamps: deque = field(default_factory=deque)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def prune(self, now: float, window: float):
        while self.stamps and now - self.stamps[0] >= window:
            self.stamps.popleft()

class RateLimiter:
    """Sliding-window admission per client key (usually the remote IP)."""

    def __init__(self, limit: int = 100, window: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self.clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._registry = threading.Lock()

    def _window(self, key: str) -> RateWindow:
        with self._registry:
            w = self._windows.get(key)
            if w is None:
                w = self._windows[key] = RateWindow()
            return w

    def admit(self, key: str) -> bool:
        while True:
            w = self._window(key)
            with w.lock:
                # sweep() may have dropped this window since we looked it up
                if self._windows.get(key) is not w:
                    continue
                now = self.clock()
                w.prune(now, self.window)
                if len(w.stamps) >= self.limit:
                    return False
                w.stamps.append(now)
                return True

    def remaining(self, key: str) -> int:
        with self._registry:
            w = self._windows.get(key)
        if w is None:
            return self.limit
        with w.lock:
            w.prune(self.clock(), self.window)
            return max(0, self.limit - len(w.stamps))

    def sweep(self) -> int:
        """Prune every window and forget keys left empty. Returns keys dropped."""
        now = self.clock()
        dropped = 0
        with self._registry:
            for key, w in list(self._windows.items()):
                with w.lock:
                    w.prune(now, self.window)
                    if not w.stamps:
                        del self._windows[key]
                        dropped += 1
        return dropped

    def __len__(self):
        return len(self._windows)
