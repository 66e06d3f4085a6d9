from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ConcurrencyLimiter:
    """Caps how many batch chunks are in flight at once, across callers."""

    def __init__(self, max_concurrent: int) -> None:
        if not isinstance(max_concurrent, int) or isinstance(max_concurrent, bool) or max_concurrent <= 0:
            raise ValueError("max_concurrent must be > 0")
        self._sem = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0
        self.max_concurrent = max_concurrent

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak(self) -> int:
        return self._peak

    def release(self) -> None:
        # the count drops before a slot frees up, so it never exceeds the cap
        with self._lock:
            self._in_flight -= 1
        try:
            self._sem.release()
        except ValueError:
            with self._lock:
                self._in_flight += 1
            raise

    @contextmanager
    def acquire(self) -> Iterator[None]:
        self._sem.acquire()
        with self._lock:
            self._in_flight += 1
            self._peak = max(self._peak, self._in_flight)
        try:
            yield
        finally:
            self.release()
