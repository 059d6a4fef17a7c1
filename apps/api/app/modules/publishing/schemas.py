from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field


class ApplyCouponIn(BaseModel):
    code: str = Field(min_length=1)


class MarkPaidIn(BaseModel):
    provider_ref: Optional[str] = None
