from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.auth import current_owner
from app.core.observability import request_id

from .schemas import LockOut, LockSetIn, VerifyIn, VerifyOut
from .service import clear_challenge, set_challenge, verify

router = APIRouter(tags=["locks"])


@router.put("/gifts/{gift_id}/lock", response_model=LockOut)
def api_set_lock(gift_id: str, body: LockSetIn, request: Request, owner_id: str = Depends(current_owner)) -> LockOut:
    return set_challenge(
        gift_id,
        owner_id,
        question=body.question,
        answer=body.answer,
        hint=body.hint,
        request_id=request_id(request),
    )


@router.delete("/gifts/{gift_id}/lock", response_model=LockOut)
def api_clear_lock(gift_id: str, request: Request, owner_id: str = Depends(current_owner)) -> LockOut:
    return clear_challenge(gift_id, owner_id, request_id=request_id(request))


@router.post("/gifts/{share_token}/verify-secret", response_model=VerifyOut)
def api_verify_secret(share_token: str, body: VerifyIn, request: Request) -> VerifyOut:
    return verify(share_token, body.answer, request_id=request_id(request))
