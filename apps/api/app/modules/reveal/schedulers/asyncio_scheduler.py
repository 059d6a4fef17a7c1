from __future__ import annotations

import asyncio
from typing import Callable, Optional

from .base import TimerHandle


class AsyncioScheduler:
    """Runs sequencer timers on an asyncio event loop via loop.call_later."""

    name = "asyncio"

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self.loop.call_later(max(delay, 0.0), callback)
