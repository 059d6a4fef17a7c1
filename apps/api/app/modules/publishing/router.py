from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from app.core.auth import current_owner
from app.core.observability import request_id
from app.modules.gifts.schemas import GiftOut

from .schemas import ApplyCouponIn, MarkPaidIn
from .service import apply_coupon, check_payment_secret, mark_paid, publish

router = APIRouter(tags=["publishing"])


@router.post("/gifts/{gift_id}/apply-coupon", response_model=GiftOut)
def api_apply_coupon(
    gift_id: str,
    body: ApplyCouponIn,
    request: Request,
    owner_id: str = Depends(current_owner),
) -> GiftOut:
    return apply_coupon(gift_id, owner_id, body.code, request_id=request_id(request))


@router.post("/gifts/{gift_id}/mark-paid", response_model=GiftOut)
def api_mark_paid(
    gift_id: str,
    request: Request,
    body: Optional[MarkPaidIn] = None,
    x_payment_secret: Optional[str] = Header(None),
) -> GiftOut:
    # called by the payment provider integration, not by the sender
    check_payment_secret(x_payment_secret)
    ref = body.provider_ref if body is not None else None
    return mark_paid(gift_id, provider_ref=ref, request_id=request_id(request))


@router.post("/gifts/{gift_id}/publish", response_model=GiftOut)
def api_publish(gift_id: str, request: Request, owner_id: str = Depends(current_owner)) -> GiftOut:
    return publish(gift_id, owner_id, request_id=request_id(request))
