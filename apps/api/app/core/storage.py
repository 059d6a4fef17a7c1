"""
Local filesystem storage for uploaded gift media.

Defaults:
- STORAGE_ROOT: ./data/storage

Layout: <root>/gifts/<gift_id>/<media_id><ext>. Returned paths are relative
to the root so the DB never stores absolute locations.
"""
from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Any, Dict, Optional


def _repo_root() -> Path:
    # apps/api/app/core/storage.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def get_storage_root() -> Path:
    raw = os.getenv("STORAGE_ROOT", "./data/storage")
    p = Path(raw)
    return (_repo_root() / p).resolve() if not p.is_absolute() else p


def ensure_storage_root() -> Path:
    root = get_storage_root()
    root.mkdir(parents=True, exist_ok=True)
    return root


def safe_under_root(relpath: str) -> Optional[Path]:
    root = get_storage_root().resolve()
    try:
        p = (root / relpath).resolve()
    except Exception:
        return None
    if str(p).startswith(str(root) + os.sep):
        return p
    return None


def write_gift_file(gift_id: str, media_id: str, ext: str, data: bytes) -> str:
    """Write bytes and return the root-relative path. Raises OSError on failure."""
    root = ensure_storage_root()
    rel = Path("gifts") / gift_id / f"{media_id}{ext}"
    target = root / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".part")
    tmp.write_bytes(data)
    tmp.replace(target)
    return rel.as_posix()


def remove_file(relpath: str) -> bool:
    p = safe_under_root(relpath)
    if p is None or not p.is_file():
        return False
    try:
        p.unlink()
        return True
    except OSError:
        return False


def remove_gift_dir(gift_id: str) -> None:
    p = safe_under_root(f"gifts/{gift_id}")
    if p is not None and p.is_dir():
        shutil.rmtree(p, ignore_errors=True)


def storage_health() -> Dict[str, Any]:
    try:
        root = ensure_storage_root()
        probe = root / ".probe_write"
        probe.write_text("ok", encoding="utf-8")
        try:
            probe.unlink()
        except Exception:
            pass
        return {"status": "ok", "kind": "local_fs", "root": str(root.as_posix())}
    except Exception as e:
        return {"status": "error", "kind": "local_fs", "root": str(get_storage_root().as_posix()), "error": str(e)}
