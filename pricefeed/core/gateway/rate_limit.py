"""In-memory dual-window rate limiter, one record per client id.

Best effort: state is per process and lost on restart. It exists to blunt
abuse of the public gateway, not to account quotas exactly.
"""
import threading
import time
from dataclasses import dataclass
from typing import Callable

from pricefeed.core.config import settings


@dataclass
class Window:
    count: int
    start: float


@dataclass
class RateLimitRecord:
    short: Window
    long: Window


class RateLimiter:

    def __init__(
        self,
        short_window: float | None = None,
        short_limit: int | None = None,
        long_window: float | None = None,
        long_limit: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.short_window = settings.rate_limit_short_window if short_window is None else short_window
        self.short_limit = settings.rate_limit_short_limit if short_limit is None else short_limit
        self.long_window = settings.rate_limit_long_window if long_window is None else long_window
        self.long_limit = settings.rate_limit_long_limit if long_limit is None else long_limit
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, RateLimitRecord] = {}

    @staticmethod
    def _tick(w: Window, now: float, length: float) -> None:
        if now - w.start > length:
            w.count = 1
            w.start = now
        else:
            w.count += 1

    def admit(self, client_id: str) -> bool:
        now = self._clock()
        with self._lock:
            rec = self._records.get(client_id)
            if rec is None:
                self._records[client_id] = RateLimitRecord(Window(1, now), Window(1, now))
                return True
            self._tick(rec.short, now, self.short_window)
            self._tick(rec.long, now, self.long_window)
            return rec.short.count <= self.short_limit and rec.long.count <= self.long_limit

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
