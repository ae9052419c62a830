"""Identity generators for saved documents."""

import threading
import time
from collections.abc import Callable
from typing import Protocol


class IdentityGenerator(Protocol):
    """Source of fresh document ids."""

    def next_id(self) -> int:
        """Return an id never handed out before by this generator."""
        ...


class MonotonicIdentity:
    """Strictly increasing ids seeded from the wall clock in microseconds.

    Seeding from the clock keeps ids from a fresh process above the ids
    already stored in blobs written by earlier processes. Microsecond
    values stay below 2**53, so ids survive a round trip through JSON
    consumers that read numbers as doubles.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            self._last = max(self._last + 1, self._clock() // 1000)
            return self._last


class SequentialIdentity:
    """Counter starting at ``start``; deterministic, for tests and fixtures."""

    def __init__(self, start: int = 1) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value


default_identity = MonotonicIdentity()
