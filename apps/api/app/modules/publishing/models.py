from __future__ import annotations

from typing import Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Coupon(SQLModel, table=True):
    __tablename__ = "coupons"

    code: str = Field(primary_key=True)  # stored upper-case
    max_redemptions: Optional[int] = Field(default=None)  # None = unlimited
    redeemed_count: int = Field(default=0)
    active: int = Field(default=1)  # 0|1
    created_at: str


# durable fact: at most one row per (gift, code)
class CouponRedemption(SQLModel, table=True):
    __tablename__ = "coupon_redemptions"
    __table_args__ = (UniqueConstraint("gift_id", "code", name="uq_coupon_redemptions_gift_code"),)

    id: str = Field(primary_key=True)
    gift_id: str = Field(foreign_key="gifts.id", index=True)
    code: str = Field(foreign_key="coupons.code")
    created_at: str
