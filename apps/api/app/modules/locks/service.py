from __future__ import annotations

import hashlib
import hmac
import os
import secrets
import sqlite3
import time
from typing import Any, Dict, Optional

from app.core.db import connect, now_iso
from app.core.errors import BadRequest, IncorrectAnswer
from app.core.observability import emit
from app.core.settings import answer_hash_iterations, unlock_token_ttl_seconds
from app.modules.gifts.service import STATUS_PUBLISHED, fetch_owned_row, require_editable

# used to burn the same hashing time when there is nothing to compare against
_DUMMY_SALT = "00" * 16


def _now_ts() -> int:
    return int(time.time())


def normalize_answer(answer: str) -> str:
    return (answer or "").strip().casefold()


def hash_answer(answer: str, salt_hex: str) -> str:
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        normalize_answer(answer).encode("utf-8"),
        bytes.fromhex(salt_hex),
        answer_hash_iterations(),
    )
    return digest.hex()


def set_challenge(
    gift_id: str,
    owner_id: str,
    question: str,
    answer: str,
    hint: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    question = question.strip()
    if not question or not normalize_answer(answer):
        raise BadRequest("question and answer are required")

    salt = os.urandom(16).hex()
    answer_hash = hash_answer(answer, salt)
    hint = (hint or "").strip() or None

    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        row = fetch_owned_row(conn, gift_id, owner_id)
        require_editable(row, "change the lock")
        conn.execute(
            """
            UPDATE gifts
            SET lock_question=?, lock_answer_hash=?, lock_answer_salt=?, lock_hint=?,
                lock_version=lock_version+1, updated_at=?
            WHERE id=?;
            """,
            (question, answer_hash, salt, hint, now_iso(), gift_id),
        )
        # outstanding tokens belong to the previous challenge
        conn.execute("DELETE FROM unlock_tokens WHERE gift_id=?;", (gift_id,))
        conn.commit()
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()

    emit("info", "lock.set", "secret question configured", request_id, __name__, gift_id=gift_id)
    return {"gift_id": gift_id, "question": question, "hint": hint, "enabled": True}


def clear_challenge(gift_id: str, owner_id: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        row = fetch_owned_row(conn, gift_id, owner_id)
        require_editable(row, "change the lock")
        conn.execute(
            """
            UPDATE gifts
            SET lock_question=NULL, lock_answer_hash=NULL, lock_answer_salt=NULL, lock_hint=NULL,
                lock_version=lock_version+1, updated_at=?
            WHERE id=?;
            """,
            (now_iso(), gift_id),
        )
        conn.execute("DELETE FROM unlock_tokens WHERE gift_id=?;", (gift_id,))
        conn.commit()
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()

    emit("info", "lock.cleared", "secret question removed", request_id, __name__, gift_id=gift_id)
    return {"gift_id": gift_id, "question": None, "hint": None, "enabled": False}


def is_locked(row: sqlite3.Row) -> bool:
    return bool(row["lock_question"]) and bool(row["lock_answer_hash"])


def verify(share_token: str, answer: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Check an answer against a published gift's challenge and mint an unlock
    token. Every failure mode raises the same IncorrectAnswer.
    """
    conn = connect()
    try:
        row = conn.execute(
            "SELECT * FROM gifts WHERE share_token=? AND status=?;",
            (share_token, STATUS_PUBLISHED),
        ).fetchone()

        if row is None or not is_locked(row):
            hash_answer(answer, _DUMMY_SALT)
            emit("info", "lock.verify.failed", "verification rejected", request_id, __name__)
            raise IncorrectAnswer()

        submitted = hash_answer(answer, str(row["lock_answer_salt"]))
        if not hmac.compare_digest(submitted, str(row["lock_answer_hash"])):
            emit("info", "lock.verify.failed", "verification rejected", request_id, __name__, gift_id=str(row["id"]))
            raise IncorrectAnswer()

        token = secrets.token_urlsafe(32)
        expires_at = _now_ts() + unlock_token_ttl_seconds()
        conn.execute("BEGIN IMMEDIATE;")
        conn.execute(
            "INSERT INTO unlock_tokens (token, gift_id, lock_version, expires_at, created_at) VALUES (?, ?, ?, ?, ?);",
            (token, str(row["id"]), int(row["lock_version"]), expires_at, now_iso()),
        )
        conn.commit()
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()

    emit("info", "lock.verify.ok", "unlock token issued", request_id, __name__, gift_id=str(row["id"]), expires_at=expires_at)
    return {"unlock_token": token, "expires_at": expires_at}


def validate_unlock_token(conn: sqlite3.Connection, gift_row: sqlite3.Row, token: Optional[str]) -> bool:
    if not token:
        return False
    tok = conn.execute("SELECT * FROM unlock_tokens WHERE token=?;", (token,)).fetchone()
    if tok is None:
        return False
    if str(tok["gift_id"]) != str(gift_row["id"]):
        return False
    if int(tok["lock_version"]) != int(gift_row["lock_version"]):
        return False
    return int(tok["expires_at"]) > _now_ts()


def purge_expired_tokens() -> int:
    conn = connect()
    try:
        cur = conn.execute("DELETE FROM unlock_tokens WHERE expires_at <= ?;", (_now_ts(),))
        return int(cur.rowcount or 0)
    finally:
        conn.close()
