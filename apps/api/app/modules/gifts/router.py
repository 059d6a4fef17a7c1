from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, File, Path, Request, UploadFile
from fastapi.responses import FileResponse

from app.core.auth import current_owner
from app.core.observability import request_id
from app.core.settings import media_max_bytes

from .schemas import ContentConfiguration, GiftDeleteOut, GiftOut, GiftPatchIn, MediaRefOut
from .service import (
    UploadInput,
    attach_media,
    create_draft,
    delete_draft,
    get_gift,
    get_media_file,
    update_draft,
)

router = APIRouter(tags=["gifts"])


@router.post("/gifts", response_model=GiftOut, status_code=201)
def api_create_gift(body: ContentConfiguration, request: Request, owner_id: str = Depends(current_owner)) -> GiftOut:
    return create_draft(owner_id, body, request_id=request_id(request))


@router.get("/gifts/{gift_id}", response_model=GiftOut)
def api_get_gift(gift_id: str = Path(...), owner_id: str = Depends(current_owner)) -> GiftOut:
    return get_gift(gift_id, owner_id)


@router.put("/gifts/{gift_id}", response_model=GiftOut)
def api_update_gift(
    gift_id: str,
    body: GiftPatchIn,
    request: Request,
    owner_id: str = Depends(current_owner),
) -> GiftOut:
    patch = body.model_dump(exclude_unset=True)
    expected = patch.pop("expected_version", None)
    return update_draft(gift_id, owner_id, patch, expected_version=expected, request_id=request_id(request))


@router.delete("/gifts/{gift_id}", response_model=GiftDeleteOut)
def api_delete_gift(gift_id: str, request: Request, owner_id: str = Depends(current_owner)) -> GiftDeleteOut:
    return delete_draft(gift_id, owner_id, request_id=request_id(request))


@router.post("/gifts/{gift_id}/media", response_model=List[MediaRefOut], status_code=201)
def api_attach_media(
    gift_id: str,
    request: Request,
    files: List[UploadFile] = File(...),
    owner_id: str = Depends(current_owner),
) -> List[MediaRefOut]:
    # one byte past the limit is enough for attach_media to reject the file
    limit = media_max_bytes()
    uploads = [
        UploadInput(
            filename=f.filename or "upload",
            content_type=f.content_type or "application/octet-stream",
            data=f.file.read(limit + 1),
        )
        for f in files
    ]
    return attach_media(gift_id, owner_id, uploads, request_id=request_id(request))


@router.get("/media/{media_id}")
def api_get_media(media_id: str) -> FileResponse:
    path, mime = get_media_file(media_id)
    return FileResponse(path, media_type=mime)
