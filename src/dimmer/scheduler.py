"""Adaptive rescan cadence with backoff on quiet pages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from dimmer.constants import EMPTY_ROUNDS_BEFORE_BACKOFF, GROWTH_FACTOR, MAX_DELAY_MS, MIN_DELAY_MS
from dimmer.timers import TimerQueue


STOPPED = "stopped"
WAITING = "waiting"
SCANNING = "scanning"


@dataclass
class ScheduleState:
    current_delay_ms: float
    consecutive_empty_rounds: int = 0


class AdaptiveScheduler:
    """States: stopped -> waiting(delay) -> scanning -> waiting(delay').

    A pass that marks anything resets the delay to the minimum. Empty passes
    count up; once the count exceeds the threshold each further empty pass
    stretches the delay by ``growth_factor`` up to ``max_delay_ms``.
    """

    TIMER_KEY = "scheduler"

    def __init__(
        self,
        timers: TimerQueue,
        scan: Callable[[], int],
        *,
        min_delay_ms: float = MIN_DELAY_MS,
        max_delay_ms: float = MAX_DELAY_MS,
        growth_factor: float = GROWTH_FACTOR,
        empty_rounds_before_backoff: int = EMPTY_ROUNDS_BEFORE_BACKOFF,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self._timers = timers
        self._scan = scan
        self.min_delay_ms = float(min_delay_ms)
        self.max_delay_ms = max(float(max_delay_ms), self.min_delay_ms)
        self.growth_factor = max(1.0, float(growth_factor))
        self.empty_rounds_before_backoff = int(empty_rounds_before_backoff)
        self._log = log
        self.state = STOPPED
        self.schedule = ScheduleState(current_delay_ms=self.min_delay_ms)

    @property
    def running(self) -> bool:
        return self.state != STOPPED

    def start(self) -> None:
        self.schedule = ScheduleState(current_delay_ms=self.min_delay_ms)
        self.state = WAITING
        self._arm()

    def stop(self) -> None:
        self._timers.cancel(self.TIMER_KEY)
        self.state = STOPPED

    def reset(self) -> None:
        self.schedule = ScheduleState(current_delay_ms=self.min_delay_ms)
        if self.state == WAITING:
            self._arm()

    def record_scan(self, found: int) -> float:
        schedule = self.schedule
        if found > 0:
            schedule.current_delay_ms = self.min_delay_ms
            schedule.consecutive_empty_rounds = 0
            return schedule.current_delay_ms
        schedule.consecutive_empty_rounds += 1
        if schedule.consecutive_empty_rounds > self.empty_rounds_before_backoff:
            grown = min(schedule.current_delay_ms * self.growth_factor, self.max_delay_ms)
            if grown != schedule.current_delay_ms and self._log:
                self._log(f"scheduler backoff delay_ms={grown:.0f}")
            schedule.current_delay_ms = grown
        return schedule.current_delay_ms

    def _arm(self) -> None:
        self._timers.call_later(self.TIMER_KEY, self.schedule.current_delay_ms, self._tick)

    def _tick(self) -> None:
        if self.state != WAITING:
            return
        self.state = SCANNING
        try:
            found = self._scan()
        finally:
            # The scan may have stopped the scheduler (engine disabled meanwhile).
            if self.state == SCANNING:
                self.state = WAITING
        if self.state != WAITING:
            return
        self.record_scan(found)
        self._arm()
