"""
Reveal stage table.

One row per stage: canonical predecessor, presence guard, advance mode and the
events it accepts. Forward, back and chapter-jump navigation in the sequencer
all read this table; nothing else decides which stages exist or how they exit.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from app.modules.gifts.schemas import ContentConfiguration


class Stage(str, Enum):
    UNLOCK = "unlock"
    ENTRY = "entry"
    INTRO_ANIMATION = "intro_animation"
    OPENING_ANIMATION = "opening_animation"
    EMOTIONAL_BEAT = "emotional_beat"
    MESSAGE_REVEAL = "message_reveal"
    LETTERS = "letters"
    PHOTOS = "photos"
    CONVERSATION = "conversation"
    MAP_CONNECTION = "map_connection"
    PROPOSAL = "proposal"
    CELEBRATION = "celebration"


class Advance(str, Enum):
    UNLOCK = "unlock"                  # correct answer
    ACTION = "action"                  # explicit continue
    ANIMATION = "animation"            # animation-complete signal
    TIMED = "timed"                    # auto-advance after a delay
    STREAM = "stream"                  # all items revealed AND confirm
    TIMED_CONFIRM = "timed_confirm"    # reveal delay, then confirm
    CHOICE = "choice"                  # accept -> next, decline -> same stage
    TERMINAL = "terminal"              # exit only


class Event(str, Enum):
    UNLOCKED = "unlocked"
    CONFIRM = "confirm"
    ANIMATION_COMPLETE = "animation_complete"
    TIMER = "timer"
    ACCEPT = "accept"
    DECLINE = "decline"
    EXIT = "exit"


NEXT = "next"
STAY = "stay"
END = "end"

Guard = Callable[[ContentConfiguration, bool], bool]

_TRANSITIONS: Dict[Advance, Mapping[Event, str]] = {
    Advance.UNLOCK: {Event.UNLOCKED: NEXT},
    Advance.ACTION: {Event.CONFIRM: NEXT},
    Advance.ANIMATION: {Event.ANIMATION_COMPLETE: NEXT},
    Advance.TIMED: {Event.TIMER: NEXT},
    Advance.STREAM: {Event.CONFIRM: NEXT},
    Advance.TIMED_CONFIRM: {Event.CONFIRM: NEXT},
    Advance.CHOICE: {Event.ACCEPT: NEXT, Event.DECLINE: STAY},
    Advance.TERMINAL: {Event.EXIT: END},
}


def _always(config: ContentConfiguration, locked: bool) -> bool:
    return True


@dataclass(frozen=True)
class StageSpec:
    stage: Stage
    predecessor: Optional[Stage]
    guard: Guard
    advance: Advance
    chapter: str
    required: bool = False

    @property
    def transitions(self) -> Mapping[Event, str]:
        return _TRANSITIONS[self.advance]


STAGE_TABLE: Tuple[StageSpec, ...] = (
    StageSpec(Stage.UNLOCK, None, lambda c, locked: locked, Advance.UNLOCK, "A Little Secret", required=True),
    StageSpec(Stage.ENTRY, Stage.UNLOCK, _always, Advance.ACTION, "A Gift Awaits"),
    StageSpec(Stage.INTRO_ANIMATION, Stage.ENTRY, _always, Advance.ANIMATION, "The Journey Begins"),
    StageSpec(Stage.OPENING_ANIMATION, Stage.INTRO_ANIMATION, _always, Advance.TIMED, "Something Special"),
    StageSpec(Stage.EMOTIONAL_BEAT, Stage.OPENING_ANIMATION, _always, Advance.TIMED, "A Celebration Of Us"),
    StageSpec(Stage.MESSAGE_REVEAL, Stage.EMOTIONAL_BEAT, _always, Advance.STREAM, "From My Heart To Yours", required=True),
    StageSpec(Stage.LETTERS, Stage.MESSAGE_REVEAL, lambda c, locked: c.has_letters(), Advance.ACTION, "Little Promises"),
    StageSpec(Stage.PHOTOS, Stage.LETTERS, lambda c, locked: c.has_photos(), Advance.ACTION, "Our Beautiful Memories"),
    StageSpec(Stage.CONVERSATION, Stage.PHOTOS, lambda c, locked: c.has_conversation(), Advance.STREAM, "Our Conversations"),
    StageSpec(Stage.MAP_CONNECTION, Stage.CONVERSATION, lambda c, locked: c.has_journey(), Advance.TIMED_CONFIRM, "Love In Motion"),
    StageSpec(Stage.PROPOSAL, Stage.MAP_CONNECTION, lambda c, locked: c.has_proposal(), Advance.CHOICE, "One Important Question"),
    StageSpec(Stage.CELEBRATION, Stage.PROPOSAL, _always, Advance.TERMINAL, "Until Always"),
)

SPECS: Dict[Stage, StageSpec] = {s.stage: s for s in STAGE_TABLE}


def derive_stages(config: ContentConfiguration, locked: bool = False) -> List[Stage]:
    """Stages that apply to this content, in canonical order."""
    return [spec.stage for spec in STAGE_TABLE if spec.guard(config, locked)]


def spec_for(stage: Stage) -> StageSpec:
    return SPECS[stage]


@dataclass(frozen=True)
class RevealTimings:
    """Seconds. Defaults follow the recipient page choreography."""

    opening_seconds: float = 1.5
    emotional_beat_seconds: float = 10.0
    message_line_interval: float = 1.5
    conversation_interval: float = 1.2
    map_reveal_seconds: float = 4.0

    def delay_for(self, stage: Stage) -> Optional[float]:
        return {
            Stage.OPENING_ANIMATION: self.opening_seconds,
            Stage.EMOTIONAL_BEAT: self.emotional_beat_seconds,
            Stage.MESSAGE_REVEAL: self.message_line_interval,
            Stage.CONVERSATION: self.conversation_interval,
            Stage.MAP_CONNECTION: self.map_reveal_seconds,
        }.get(stage)


DEFAULT_DECLINE_RESPONSES = ("Maybe next time... but the door is always open!",
                             "Are you sure?", "Really sure?", "Think again!")
