"""
View resolver: what a share link (or the owner's preview) shows.

A locked gift only discloses its question and hint until the caller presents
an unlock token minted for the current challenge.
"""
from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional

from app.core.db import connect
from app.core.errors import NotFound
from app.modules.gifts.service import (
    STATUS_PUBLISHED,
    fetch_owned_row,
    list_media_refs,
    load_config,
)
from app.modules.locks.service import is_locked, validate_unlock_token
from app.modules.reveal.schemas import stages_out
from app.modules.reveal.stages import Stage, derive_stages


def _full_view(conn: sqlite3.Connection, row: sqlite3.Row) -> Dict[str, Any]:
    config = load_config(row)
    # the unlock stage is already behind whoever receives the full view
    plan = [st for st in derive_stages(config, locked=False) if st != Stage.UNLOCK]
    return {
        "locked": False,
        "share_token": row["share_token"],
        "config": config.public(),
        "media_refs": list_media_refs(conn, str(row["id"])),
        "stages": stages_out(plan),
    }


def _locked_view(row: sqlite3.Row) -> Dict[str, Any]:
    # no part of config_json before the answer is verified
    return {"locked": True, "question": row["lock_question"], "hint": row["lock_hint"]}


def resolve(share_token: str, unlock_token: Optional[str] = None) -> Dict[str, Any]:
    conn = connect()
    try:
        row = conn.execute(
            "SELECT * FROM gifts WHERE share_token=? AND status=?;",
            (share_token, STATUS_PUBLISHED),
        ).fetchone()
        if row is None:
            raise NotFound()
        if is_locked(row) and not validate_unlock_token(conn, row, unlock_token):
            return _locked_view(row)
        return _full_view(conn, row)
    finally:
        conn.close()


def preview(gift_id: str, owner_id: str) -> Dict[str, Any]:
    """Owner-only full view in any status; the lock is bypassed."""
    conn = connect()
    try:
        row = fetch_owned_row(conn, gift_id, owner_id)
        return _full_view(conn, row)
    finally:
        conn.close()
