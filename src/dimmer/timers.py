"""Keyed, cancellable timers pumped by the engine loop."""

from __future__ import annotations

import heapq
import itertools
import time
from typing import Callable


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ManualClock:
    def __init__(self, start_ms: float = 0.0) -> None:
        self.now_ms = float(start_ms)

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> float:
        self.now_ms += float(ms)
        return self.now_ms


class TimerHandle:
    def __init__(self, key: str, due_ms: float, callback: Callable[[], None]) -> None:
        self.key = key
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True


class TimerQueue:
    """One pending timer per key; scheduling a key again replaces it.

    Nothing runs on its own: the owner calls :meth:`run_due`, so every callback
    executes on the caller's thread and never overlaps another one.
    """

    def __init__(self, clock: Callable[[], float] = monotonic_ms) -> None:
        self._clock = clock
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._by_key: dict[str, TimerHandle] = {}
        self._seq = itertools.count()

    def now(self) -> float:
        return self._clock()

    def call_later(self, key: str, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        self.cancel(key)
        handle = TimerHandle(key, self._clock() + max(0.0, float(delay_ms)), callback)
        self._by_key[key] = handle
        heapq.heappush(self._heap, (handle.due_ms, next(self._seq), handle))
        return handle

    def cancel(self, key: str) -> bool:
        handle = self._by_key.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        count = 0
        for key in list(self._by_key):
            if self.cancel(key):
                count += 1
        self._heap.clear()
        return count

    def pending(self, key: str) -> bool:
        handle = self._by_key.get(key)
        return handle is not None and handle.active

    def due_in(self, key: str) -> float | None:
        handle = self._by_key.get(key)
        if handle is None or not handle.active:
            return None
        return max(0.0, handle.due_ms - self._clock())

    def next_due_ms(self) -> float | None:
        self._drop_dead()
        return self._heap[0][0] if self._heap else None

    def run_due(self) -> int:
        ran = 0
        now = self._clock()
        while True:
            self._drop_dead()
            if not self._heap or self._heap[0][0] > now:
                return ran
            _, _, handle = heapq.heappop(self._heap)
            if self._by_key.get(handle.key) is handle:
                del self._by_key[handle.key]
            handle.fired = True
            handle.callback()
            ran += 1

    def _drop_dead(self) -> None:
        while self._heap and not self._heap[0][2].active:
            heapq.heappop(self._heap)
