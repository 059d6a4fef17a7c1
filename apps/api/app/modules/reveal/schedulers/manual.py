from __future__ import annotations

import heapq
import itertools
from typing import Callable, List, Tuple


class ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Virtual-clock scheduler: nothing fires until `advance()` is called.
    Deterministic driver for previews, replays and tests.
    """

    name = "manual"

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, ManualTimer]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (timer.when, next(self._seq), timer))
        return timer

    def pending(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in order. Returns how many fired."""
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, timer = heapq.heappop(self._queue)
            self.now = when
            if timer.cancelled:
                continue
            timer.callback()
            fired += 1
        self.now = target
        return fired

    def run_all(self, limit: int = 10_000) -> int:
        fired = 0
        while fired < limit:
            live = [t for _, _, t in self._queue if not t.cancelled]
            if not live:
                break
            fired += self.advance(min(t.when for t in live) - self.now)
        return fired
