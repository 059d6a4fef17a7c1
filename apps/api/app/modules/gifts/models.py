from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


# status: draft|awaiting_payment|published (forward-only; editable until published)
# payment_state: unpaid|coupon_redeemed|paid
class Gift(SQLModel, table=True):
    __tablename__ = "gifts"

    id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    status: str = Field(default="draft", index=True)
    payment_state: str = Field(default="unpaid")

    config_json: str
    version: int = Field(default=1)

    lock_question: Optional[str] = Field(default=None)
    lock_answer_hash: Optional[str] = Field(default=None)
    lock_answer_salt: Optional[str] = Field(default=None)
    lock_hint: Optional[str] = Field(default=None)
    lock_version: int = Field(default=0)

    # set exactly once, at publish
    share_token: Optional[str] = Field(default=None, unique=True, index=True)

    created_at: str
    updated_at: str
    published_at: Optional[str] = Field(default=None)


# reference list owned by the gift; bytes owned by storage
class GiftMedia(SQLModel, table=True):
    __tablename__ = "gift_media"

    id: str = Field(primary_key=True)
    gift_id: str = Field(foreign_key="gifts.id", index=True)
    filename: str
    mime_type: str
    size_bytes: int = Field(default=0)
    storage_path: str
    created_at: str
