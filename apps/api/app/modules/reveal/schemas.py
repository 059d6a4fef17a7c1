from __future__ import annotations

from typing import List

from pydantic import BaseModel

from .stages import Stage, spec_for


class StageOut(BaseModel):
    stage: Stage
    chapter: str
    advance: str
    required: bool


def stages_out(stages: List[Stage]) -> List[StageOut]:
    out: List[StageOut] = []
    for st in stages:
        spec = spec_for(st)
        out.append(StageOut(stage=st, chapter=spec.chapter, advance=spec.advance.value, required=spec.required))
    return out
