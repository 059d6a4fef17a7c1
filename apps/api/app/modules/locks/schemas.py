from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field


class LockSetIn(BaseModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    hint: Optional[str] = None


class LockOut(BaseModel):
    gift_id: str
    question: Optional[str] = None
    hint: Optional[str] = None
    enabled: bool


class VerifyIn(BaseModel):
    answer: str = ""


class VerifyOut(BaseModel):
    unlock_token: str
    expires_at: int
