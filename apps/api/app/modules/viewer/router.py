from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, Query

from app.core.auth import current_owner

from .schemas import FullView, LockedView
from .service import preview, resolve

router = APIRouter(tags=["viewer"])


@router.get("/gifts/view/{share_token}", response_model=Union[LockedView, FullView])
def api_view_gift(share_token: str, unlock_token: Optional[str] = Query(None)) -> Union[LockedView, FullView]:
    return resolve(share_token, unlock_token)


@router.get("/gifts/{gift_id}/preview", response_model=FullView)
def api_preview_gift(gift_id: str, owner_id: str = Depends(current_owner)) -> FullView:
    return preview(gift_id, owner_id)
