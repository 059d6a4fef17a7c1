"""
Structured stdout logging shared by the middleware and the services.

Line keys: ts, level, message, request_id, event, module (+ extras).
Never pass answers, unlock tokens or answer hashes as extras.
"""
from __future__ import annotations

import datetime
import json
import logging
import os
import uuid
from typing import Any, Dict, Optional

from fastapi import Request

_log = logging.getLogger("app")
if not _log.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def emit(level: str, event: str, message: str, request_id: Optional[str], module: str, **extra: Any) -> None:
    payload: Dict[str, Any] = {
        "ts": _now_iso(),
        "level": level.lower(),
        "message": message,
        "request_id": request_id,
        "event": event,
        "module": module,
    }
    payload.update(extra)
    print(json.dumps(payload, ensure_ascii=False, default=str), flush=True)


def request_id(request: Request) -> str:
    st = getattr(request, "state", None)
    rid = getattr(st, "request_id", None) if st is not None else None
    if rid:
        return str(rid)
    hv = request.headers.get("X-Request-Id")
    if hv and hv.strip():
        return hv.strip()
    return uuid.uuid4().hex.upper()
