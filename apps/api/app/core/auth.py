from __future__ import annotations

from fastapi import Request

from app.core.errors import Unauthenticated

# Set by the upstream account gateway after it authenticated the sender.
OWNER_HEADER = "X-Owner-Id"


def current_owner(request: Request) -> str:
    owner = (request.headers.get(OWNER_HEADER) or "").strip()
    if not owner:
        raise Unauthenticated()
    return owner
