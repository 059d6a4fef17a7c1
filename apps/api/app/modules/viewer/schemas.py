from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from app.modules.gifts.schemas import ContentConfiguration, MediaRefOut
from app.modules.reveal.schemas import StageOut


class LockedView(BaseModel):
    locked: Literal[True] = True
    question: str
    hint: Optional[str] = None


class FullView(BaseModel):
    locked: Literal[False] = False
    share_token: Optional[str] = None
    config: ContentConfiguration
    media_refs: List[MediaRefOut] = Field(default_factory=list)
    stages: List[StageOut] = Field(default_factory=list)

