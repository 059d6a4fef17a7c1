from __future__ import annotations

from sqlmodel import SQLModel, Field


# minted on a correct answer; valid while unexpired and lock_version matches
class UnlockToken(SQLModel, table=True):
    __tablename__ = "unlock_tokens"

    token: str = Field(primary_key=True)
    gift_id: str = Field(foreign_key="gifts.id", index=True)
    lock_version: int
    expires_at: int  # epoch seconds
    created_at: str
