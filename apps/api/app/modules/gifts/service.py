from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from app.core import storage
from app.core.db import connect, new_ulid, now_iso
from app.core.errors import BadRequest, Conflict, Forbidden, NotFound, UpstreamUnavailable
from app.core.observability import emit
from app.core.settings import media_base_url, media_max_bytes

from .schemas import CONFIG_GROUPS, ContentConfiguration

STATUS_DRAFT = "draft"
STATUS_AWAITING_PAYMENT = "awaiting_payment"
STATUS_PUBLISHED = "published"

# only published gifts are frozen
EDITABLE_STATUSES = (STATUS_DRAFT, STATUS_AWAITING_PAYMENT)

ALLOWED_MEDIA_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/heic": ".heic",
}


@dataclass(frozen=True)
class UploadInput:
    filename: str
    content_type: str
    data: bytes


# -------------------------
# row helpers (shared with locks / publishing / viewer)
# -------------------------
def fetch_gift_row(conn: sqlite3.Connection, gift_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM gifts WHERE id=?;", (gift_id,)).fetchone()
    if row is None:
        raise NotFound(details={"gift_id": gift_id})
    return row


def fetch_owned_row(conn: sqlite3.Connection, gift_id: str, owner_id: str) -> sqlite3.Row:
    row = fetch_gift_row(conn, gift_id)
    if str(row["owner_id"]) != owner_id:
        raise Forbidden()
    return row


def require_editable(row: sqlite3.Row, action: str) -> None:
    if row["status"] not in EDITABLE_STATUSES:
        raise Conflict(f"cannot {action}: gift is {row['status']}", details={"status": row["status"]})


def load_config(row: sqlite3.Row) -> ContentConfiguration:
    return ContentConfiguration.model_validate(json.loads(row["config_json"]))


def media_url(media_id: str) -> str:
    return f"{media_base_url()}/{media_id}"


def list_media_refs(conn: sqlite3.Connection, gift_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT id, mime_type FROM gift_media WHERE gift_id=? ORDER BY created_at ASC, rowid ASC;",
        (gift_id,),
    ).fetchall()
    return [{"id": str(r["id"]), "url": media_url(str(r["id"])), "mime_type": r["mime_type"]} for r in rows]


def row_to_gift(conn: sqlite3.Connection, row: sqlite3.Row) -> Dict[str, Any]:
    lock = None
    if row["lock_question"]:
        lock = {"question": row["lock_question"], "hint": row["lock_hint"]}
    return {
        "id": str(row["id"]),
        "status": row["status"],
        "payment_state": row["payment_state"],
        "version": int(row["version"]),
        "config": load_config(row),
        "lock": lock,
        "share_token": row["share_token"],
        "media_refs": list_media_refs(conn, str(row["id"])),
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "published_at": row["published_at"],
    }


def _validate_photos(conn: sqlite3.Connection, gift_id: str, config: ContentConfiguration) -> None:
    if config.visuals is None or not config.visuals.photos:
        return
    known = {r["id"] for r in list_media_refs(conn, gift_id)}
    unknown = [p for p in config.visuals.photos if p not in known]
    if unknown:
        raise BadRequest("visuals.photos must reference media attached to this gift", details={"unknown": unknown})


# -------------------------
# Draft store
# -------------------------
def create_draft(owner_id: str, config: ContentConfiguration, request_id: Optional[str] = None) -> Dict[str, Any]:
    if config.has_photos():
        raise BadRequest("a new draft has no media yet; attach photos first")

    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        now = now_iso()
        gift_id = new_ulid()
        conn.execute(
            """
            INSERT INTO gifts (id, owner_id, status, payment_state, config_json, version,
                               lock_version, created_at, updated_at)
            VALUES (?, ?, ?, 'unpaid', ?, 1, 0, ?, ?);
            """,
            (gift_id, owner_id, STATUS_DRAFT, config.model_dump_json(), now, now),
        )
        conn.commit()
        emit("info", "gift.created", "draft created", request_id, __name__, gift_id=gift_id, owner_id=owner_id)
        return row_to_gift(conn, fetch_gift_row(conn, gift_id))
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()


def get_gift(gift_id: str, owner_id: str) -> Dict[str, Any]:
    conn = connect()
    try:
        row = fetch_owned_row(conn, gift_id, owner_id)
        return row_to_gift(conn, row)
    finally:
        conn.close()


def update_draft(
    gift_id: str,
    owner_id: str,
    patch: Dict[str, Any],
    *,
    expected_version: Optional[int] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Autosave: replace the supplied groups, keep the rest.

    BEGIN IMMEDIATE takes the write lock before the read, so two autosaves for
    the same gift cannot interleave their read-merge-write; the version check
    additionally rejects saves built on a stale copy (expected_version).
    """
    if "identity" in patch and patch["identity"] is None:
        raise BadRequest("identity cannot be cleared")

    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        row = fetch_owned_row(conn, gift_id, owner_id)
        require_editable(row, "edit")

        current_version = int(row["version"])
        if expected_version is not None and expected_version != current_version:
            raise Conflict(
                "draft was modified by another save",
                details={"expected_version": expected_version, "current_version": current_version},
            )

        merged = json.loads(row["config_json"])
        touched: List[str] = []
        for group in CONFIG_GROUPS:
            if group in patch:
                merged[group] = patch[group]
                touched.append(group)

        try:
            config = ContentConfiguration.model_validate(merged)
        except ValidationError as e:
            raise BadRequest("invalid configuration", details={"errors": json.loads(e.json())})
        _validate_photos(conn, gift_id, config)

        if not touched:
            conn.rollback()
            return row_to_gift(conn, row)

        cur = conn.execute(
            """
            UPDATE gifts SET config_json=?, version=version+1, updated_at=?
            WHERE id=? AND version=? AND status IN (?, ?);
            """,
            (config.model_dump_json(), now_iso(), gift_id, current_version, *EDITABLE_STATUSES),
        )
        if cur.rowcount != 1:
            raise Conflict("draft changed during save")
        conn.commit()

        emit("info", "gift.updated", "draft autosaved", request_id, __name__,
             gift_id=gift_id, groups=touched, version=current_version + 1)
        return row_to_gift(conn, fetch_gift_row(conn, gift_id))
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()


def _validate_upload(f: UploadInput) -> str:
    ctype = (f.content_type or "").split(";")[0].strip().lower()
    ext = ALLOWED_MEDIA_TYPES.get(ctype)
    if ext is None:
        raise BadRequest("unsupported media type", details={"filename": f.filename, "content_type": ctype})
    if not f.data:
        raise BadRequest("empty file", details={"filename": f.filename})
    limit = media_max_bytes()
    if len(f.data) > limit:
        raise BadRequest("file too large", details={"filename": f.filename, "max_bytes": limit})
    return ext


def attach_media(
    gift_id: str,
    owner_id: str,
    files: List[UploadInput],
    request_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Additive: stores every file, then appends one reference row per file.
    Either all references are recorded or none (written files are removed).
    """
    if not files:
        raise BadRequest("no files supplied")
    exts = [_validate_upload(f) for f in files]

    conn = connect()
    try:
        row = fetch_owned_row(conn, gift_id, owner_id)
        require_editable(row, "attach media")
    finally:
        conn.close()

    written: List[Tuple[str, str, UploadInput]] = []
    try:
        for f, ext in zip(files, exts):
            media_id = new_ulid()
            rel = storage.write_gift_file(gift_id, media_id, ext, f.data)
            written.append((media_id, rel, f))
    except OSError as e:
        for _, rel, _f in written:
            storage.remove_file(rel)
        emit("error", "gift.media.storage_failed", str(e), request_id, __name__, gift_id=gift_id)
        raise UpstreamUnavailable("media storage unavailable")

    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        row = fetch_owned_row(conn, gift_id, owner_id)
        require_editable(row, "attach media")
        now = now_iso()
        for media_id, rel, f in written:
            conn.execute(
                """
                INSERT INTO gift_media (id, gift_id, filename, mime_type, size_bytes, storage_path, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (media_id, gift_id, Path(f.filename or "upload").name, f.content_type.split(";")[0].strip().lower(),
                 len(f.data), rel, now),
            )
        conn.execute("UPDATE gifts SET updated_at=? WHERE id=?;", (now, gift_id))
        conn.commit()
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        for _, rel, _f in written:
            storage.remove_file(rel)
        raise
    finally:
        conn.close()

    emit("info", "gift.media.attached", f"{len(written)} file(s) attached", request_id, __name__,
         gift_id=gift_id, media_ids=[m for m, _, _ in written])
    return [
        {"id": media_id, "url": media_url(media_id), "mime_type": f.content_type.split(";")[0].strip().lower()}
        for media_id, _, f in written
    ]


def get_media_file(media_id: str) -> Tuple[Path, str]:
    conn = connect()
    try:
        row = conn.execute("SELECT * FROM gift_media WHERE id=?;", (media_id,)).fetchone()
    finally:
        conn.close()
    if row is None:
        raise NotFound("media not found", details={"media_id": media_id})
    p = storage.safe_under_root(str(row["storage_path"]))
    if p is None or not p.is_file():
        raise NotFound("media not found", details={"media_id": media_id})
    return p, str(row["mime_type"])


def delete_draft(gift_id: str, owner_id: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        row = fetch_owned_row(conn, gift_id, owner_id)
        require_editable(row, "delete")
        paths = [str(r["storage_path"]) for r in conn.execute(
            "SELECT storage_path FROM gift_media WHERE gift_id=?;", (gift_id,)
        ).fetchall()]
        conn.execute("DELETE FROM gift_media WHERE gift_id=?;", (gift_id,))
        conn.execute("DELETE FROM unlock_tokens WHERE gift_id=?;", (gift_id,))
        conn.execute("DELETE FROM coupon_redemptions WHERE gift_id=?;", (gift_id,))
        conn.execute("DELETE FROM gifts WHERE id=? AND status IN (?, ?);", (gift_id, *EDITABLE_STATUSES))
        conn.commit()
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()

    for rel in paths:
        storage.remove_file(rel)
    storage.remove_gift_dir(gift_id)
    emit("info", "gift.deleted", "draft deleted", request_id, __name__, gift_id=gift_id)
    return {"id": gift_id, "status": "deleted"}
