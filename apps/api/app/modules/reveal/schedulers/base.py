from __future__ import annotations

from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """
    Minimal timer interface the sequencer owns its delays through.
    Implementations must run callbacks on the caller's single execution
    context (no threads).
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...
