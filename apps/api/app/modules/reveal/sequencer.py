"""
Recipient-side reveal state machine.

Single-threaded and event driven: user input (confirm/accept/decline/back/
jump), animation-complete signals and timer callbacks are the only inputs.
Every delay is scheduled through the injected Scheduler and owned by the
sequencer; leaving a stage or tearing down cancels them, and a generation
counter drops any callback that still slips through.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Set

from app.modules.gifts.schemas import ContentConfiguration

from .schedulers.base import Scheduler, TimerHandle
from .stages import (
    DEFAULT_DECLINE_RESPONSES,
    Advance,
    Event,
    RevealTimings,
    Stage,
    derive_stages,
    spec_for,
)

_log = logging.getLogger("app.reveal")

Listener = Callable[["RevealSequencer"], None]


class InvalidTransition(Exception):
    """Event not accepted in the current stage (or sequencer halted/closed)."""

    def __init__(self, stage: Optional[Stage], event: str, reason: str = "") -> None:
        self.stage = stage
        self.event = event
        self.reason = reason
        where = stage.value if stage is not None else "<not started>"
        super().__init__(f"{event} not allowed in {where}" + (f": {reason}" if reason else ""))


class RevealSequencer:
    def __init__(
        self,
        config: ContentConfiguration,
        *,
        locked: bool = False,
        scheduler: Optional[Scheduler] = None,
        timings: Optional[RevealTimings] = None,
    ) -> None:
        if scheduler is None:
            from .schedulers.asyncio_scheduler import AsyncioScheduler

            scheduler = AsyncioScheduler()
        self.config = config
        self.scheduler = scheduler
        self.timings = timings or RevealTimings()
        self.plan: List[Stage] = derive_stages(config, locked)

        self._lines = config.message_lines()
        self._messages = [m for m in (config.interaction.messages if config.interaction else []) if m.strip()]
        self._responses = [r for r in (config.interaction.responses if config.interaction else []) if r.strip()]

        self._index: Optional[int] = None
        self._visited: Set[Stage] = set()
        self._completed: Set[Stage] = set()
        self._timers: List[TimerHandle] = []
        self._generation = 0
        self._listeners: List[Listener] = []

        self.revealed_lines = 0
        self.revealed_messages = 0
        self.decline_count = 0
        self.last_acknowledgement: Optional[str] = None
        self.halted: Optional[Stage] = None
        self.exited = False
        self.torn_down = False
        self.history: List[Stage] = []

    # -------------------------
    # read-only views
    # -------------------------
    @property
    def state(self) -> Optional[Stage]:
        if self._index is None:
            return None
        return self.plan[self._index]

    @property
    def index(self) -> Optional[int]:
        return self._index

    @property
    def revealed_line_texts(self) -> List[str]:
        return self._lines[: self.revealed_lines]

    @property
    def revealed_message_texts(self) -> List[str]:
        return self._messages[: self.revealed_messages]

    def is_completed(self, stage: Stage) -> bool:
        return stage in self._completed

    def stream_complete(self) -> bool:
        st = self.state
        if st == Stage.MESSAGE_REVEAL:
            return self.revealed_lines >= len(self._lines)
        if st == Stage.CONVERSATION:
            return self.revealed_messages >= len(self._messages)
        return False

    def chapters(self) -> List[Dict[str, Any]]:
        return [
            {"index": i, "stage": st.value, "chapter": spec_for(st).chapter, "reachable": self.can_jump(i)}
            for i, st in enumerate(self.plan)
        ]

    def snapshot(self) -> Dict[str, Any]:
        st = self.state
        return {
            "stage": st.value if st else None,
            "index": self._index,
            "plan": [s.value for s in self.plan],
            "revealed_lines": self.revealed_line_texts,
            "revealed_messages": self.revealed_message_texts,
            "stream_complete": self.stream_complete(),
            "completed": sorted(s.value for s in self._completed),
            "decline_count": self.decline_count,
            "acknowledgement": self.last_acknowledgement,
            "halted": self.halted.value if self.halted else None,
            "exited": self.exited,
        }

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -------------------------
    # lifecycle
    # -------------------------
    def start(self) -> Stage:
        if self._index is not None:
            raise InvalidTransition(self.state, "start", "already started")
        self._check_open("start")
        self._enter(0)
        return self.state  # type: ignore[return-value]

    def teardown(self) -> None:
        """Navigation away: cancel every pending timer; later events are rejected."""
        self._cancel_timers()
        self._generation += 1
        self.torn_down = True

    # -------------------------
    # events
    # -------------------------
    def unlock_succeeded(self) -> Stage:
        self._expect(Event.UNLOCKED)
        return self._advance()

    def confirm(self) -> Stage:
        st = self._current("confirm")
        spec = spec_for(st)
        if Event.CONFIRM in spec.transitions:
            if spec.advance == Advance.STREAM and not self.stream_complete():
                raise InvalidTransition(st, Event.CONFIRM.value, "still revealing")
            if spec.advance == Advance.TIMED_CONFIRM and st not in self._completed:
                raise InvalidTransition(st, Event.CONFIRM.value, "reveal not finished")
            return self._advance()
        # a re-entered automatic stage that already finished moves on when asked
        if spec.advance in (Advance.ANIMATION, Advance.TIMED) and st in self._completed:
            return self._advance()
        raise InvalidTransition(st, Event.CONFIRM.value)

    def animation_complete(self) -> Stage:
        self._expect(Event.ANIMATION_COMPLETE)
        return self._advance()

    def accept(self) -> Stage:
        self._expect(Event.ACCEPT)
        return self._advance()

    def decline(self) -> str:
        """Soft no: stay on the proposal and hand back an acknowledgement."""
        self._expect(Event.DECLINE)
        pool = self._responses or list(DEFAULT_DECLINE_RESPONSES)
        ack = pool[self.decline_count % len(pool)]
        self.decline_count += 1
        self.last_acknowledgement = ack
        self._enter(self._index)  # type: ignore[arg-type]
        return ack

    def exit(self) -> None:
        self._expect(Event.EXIT)
        self._completed.add(Stage.CELEBRATION)
        self.exited = True
        self.teardown()
        self._notify()

    def back(self) -> Stage:
        st = self._current("back")
        target = self._index - 1  # type: ignore[operator]
        if target < 0 or self.plan[target] == Stage.UNLOCK:
            raise InvalidTransition(st, "back", "no earlier stage")
        self._enter(target)
        return self.state  # type: ignore[return-value]

    def can_jump(self, target: int) -> bool:
        if self._index is None or self.halted is not None or self.exited or self.torn_down:
            return False
        if target < 0 or target >= len(self.plan) or target == self._index:
            return False
        if self.plan[target] == Stage.UNLOCK:
            return False
        if Stage.UNLOCK in self.plan and Stage.UNLOCK not in self._completed:
            return False
        if target < self._index:
            return True
        # forward: only through stages whose exit condition has been met
        for i in range(self._index, target):
            st = self.plan[i]
            if st not in self._completed and not self._exit_condition_met(st):
                return False
            if i != self._index and st not in self._visited:
                return False
        return True

    def jump(self, target: int) -> Stage:
        st = self._current("jump")
        if not self.can_jump(target):
            raise InvalidTransition(st, "jump", f"stage index {target} not reachable")
        if target > self._index:  # type: ignore[operator]
            self._completed.add(st)
        self._enter(target)
        return self.state  # type: ignore[return-value]

    # -------------------------
    # degradation
    # -------------------------
    def stage_failed(self, stage: Stage) -> Optional[Stage]:
        """
        Content for `stage` failed to load. Optional stages are dropped from
        the plan; required ones halt the sequencer until retry().
        """
        if stage not in self.plan:
            return self.state
        spec = spec_for(stage)
        if spec.required or spec.advance == Advance.TERMINAL:
            self._cancel_timers()
            self._generation += 1
            self.halted = stage
            _log.warning("reveal halted: required stage %s failed", stage.value)
            self._notify()
            return self.state

        pos = self.plan.index(stage)
        current = self._index
        self.plan.pop(pos)
        _log.info("reveal skipped optional stage %s", stage.value)
        if current is None:
            return None
        if pos < current:
            self._index = current - 1
        elif pos == current:
            self._enter(current)
        return self.state

    def retry(self) -> Stage:
        if self.halted is None:
            raise InvalidTransition(self.state, "retry", "not halted")
        halted = self.halted
        self.halted = None
        if self._index is None:
            self._enter(0)
        elif self.state == halted:
            self._enter(self._index)
        else:
            self._notify()
        return self.state  # type: ignore[return-value]

    # -------------------------
    # internals
    # -------------------------
    def _check_open(self, event: str) -> None:
        if self.torn_down:
            raise InvalidTransition(self.state, event, "sequencer torn down")
        if self.halted is not None:
            raise InvalidTransition(self.state, event, f"halted on {self.halted.value}")

    def _current(self, event: str) -> Stage:
        self._check_open(event)
        st = self.state
        if st is None:
            raise InvalidTransition(None, event, "not started")
        return st

    def _expect(self, event: Event) -> Stage:
        st = self._current(event.value)
        if event not in spec_for(st).transitions:
            raise InvalidTransition(st, event.value)
        return st

    def _exit_condition_met(self, stage: Stage) -> bool:
        adv = spec_for(stage).advance
        if adv == Advance.ACTION:
            return True
        if adv == Advance.STREAM and stage == self.state:
            return self.stream_complete()
        return stage in self._completed

    def _advance(self) -> Stage:
        st = self.state
        assert st is not None and self._index is not None
        self._completed.add(st)
        if self._index + 1 >= len(self.plan):
            raise InvalidTransition(st, "advance", "no further stage")
        self._enter(self._index + 1)
        return self.state  # type: ignore[return-value]

    def _cancel_timers(self) -> None:
        for t in self._timers:
            t.cancel()
        self._timers = []

    def _schedule(self, delay: float, fn: Callable[[], None]) -> None:
        gen = self._generation

        def _fire() -> None:
            if gen != self._generation or self.torn_down:
                return
            fn()

        self._timers.append(self.scheduler.call_later(delay, _fire))

    def _enter(self, index: int) -> None:
        self._cancel_timers()
        self._generation += 1
        self._index = index
        st = self.plan[index]
        self._visited.add(st)
        self.history.append(st)

        # one-shot effects run only until the stage has completed once
        if st not in self._completed:
            if st in (Stage.OPENING_ANIMATION, Stage.EMOTIONAL_BEAT):
                self._schedule(self.timings.delay_for(st) or 0.0, self._on_timed_elapsed)
            elif st == Stage.MESSAGE_REVEAL:
                self._schedule_stream_tick()
            elif st == Stage.CONVERSATION:
                self._schedule_stream_tick()
            elif st == Stage.MAP_CONNECTION:
                self._schedule(self.timings.map_reveal_seconds, self._on_map_revealed)
        self._notify()

    def _on_timed_elapsed(self) -> None:
        self._advance()

    def _on_map_revealed(self) -> None:
        self._completed.add(Stage.MAP_CONNECTION)
        self._notify()

    def _schedule_stream_tick(self) -> None:
        st = self.state
        if st == Stage.MESSAGE_REVEAL and self.revealed_lines < len(self._lines):
            self._schedule(self.timings.message_line_interval, self._on_stream_tick)
        elif st == Stage.CONVERSATION and self.revealed_messages < len(self._messages):
            self._schedule(self.timings.conversation_interval, self._on_stream_tick)

    def _on_stream_tick(self) -> None:
        if self.state == Stage.MESSAGE_REVEAL:
            self.revealed_lines += 1
        elif self.state == Stage.CONVERSATION:
            self.revealed_messages += 1
        self._notify()
        self._schedule_stream_tick()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
