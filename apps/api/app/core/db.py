"""
DB utilities (sqlite default).

Defaults:
- DATABASE_URL: sqlite:///./data/app.db

Services talk to SQLite through plain sqlite3 connections (`connect()`); the
table shapes are declared as SQLModel models so `init_db()` and alembic share
one metadata.
"""
from __future__ import annotations

import os
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./data/app.db")


def _repo_root() -> Path:
    # apps/api/app/core/db.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def resolve_sqlite_path(database_url: str) -> Optional[Path]:
    if not database_url.startswith("sqlite:///"):
        return None
    p = database_url[len("sqlite:///") :]

    # absolute unix
    if p.startswith("/"):
        return Path(p)

    # absolute windows drive, both C:/ and C:\ forms
    if len(p) >= 3 and p[1] == ":" and (p[2] == "/" or p[2] == "\\"):
        return Path(p)

    # relative -> repo root
    return (_repo_root() / p).resolve()


def _encode_crockford(value: int, length: int) -> str:
    chars: List[str] = []
    for _ in range(length):
        chars.append(_CROCKFORD32[value & 31])
        value >>= 5
    return "".join(reversed(chars))


def new_ulid() -> str:
    # 48-bit time (ms) + 80-bit randomness
    ms = int(time.time() * 1000) & ((1 << 48) - 1)
    rnd = int.from_bytes(os.urandom(10), "big")
    v = (ms << 80) | rnd
    return _encode_crockford(v, 26)


def now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


_engines: Dict[str, Engine] = {}


def get_engine() -> Engine:
    url = get_database_url()
    if url in _engines:
        return _engines[url]

    connect_args = {}
    if url.startswith("sqlite:///"):
        connect_args = {"check_same_thread": False}

    resolved = url
    sp = resolve_sqlite_path(url)
    if sp is not None:
        sp.parent.mkdir(parents=True, exist_ok=True)
        resolved = "sqlite:///" + sp.as_posix()

    eng = create_engine(resolved, future=True, connect_args=connect_args)
    _engines[url] = eng
    return eng


def connect() -> sqlite3.Connection:
    """
    Open a sqlite3 connection for service code.

    - isolation_level=None: callers open transactions explicitly
      (`BEGIN IMMEDIATE;`) so writes to one gift are serialized.
    - busy timeout lets concurrent writers queue instead of failing.
    """
    url = get_database_url()
    sp = resolve_sqlite_path(url)
    if sp is None:
        raise ValueError(f"Only sqlite supported for now, got DATABASE_URL={url!r}")
    sp.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(sp), timeout=30, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def init_db() -> None:
    # registers tables on SQLModel.metadata
    from app.modules.gifts import models as _gift_models  # noqa: F401
    from app.modules.locks import models as _lock_models  # noqa: F401
    from app.modules.publishing import models as _publishing_models  # noqa: F401

    SQLModel.metadata.create_all(get_engine())

    from app.modules.publishing.service import seed_coupons
    from app.modules.locks.service import purge_expired_tokens

    seed_coupons()
    purge_expired_tokens()


def db_health() -> Dict[str, Any]:
    url = get_database_url()
    kind = "sqlite" if url.startswith("sqlite") else "unknown"
    sp = resolve_sqlite_path(url)
    path = str(sp.as_posix()) if sp is not None else url

    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok", "kind": kind, "path": path}
    except Exception as e:
        return {"status": "error", "kind": kind, "path": path, "error": str(e)}
