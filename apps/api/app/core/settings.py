"""
Runtime settings, read from the environment on every call so tests and
deployments can override them without a restart.
"""
from __future__ import annotations

import os
from typing import Dict, Optional


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        v = int(raw)
    except Exception:
        return default
    return max(v, minimum)


def app_version() -> str:
    return os.getenv("APP_VERSION", "0.1.0")


def media_base_url() -> str:
    return os.getenv("MEDIA_BASE_URL", "/media").rstrip("/")


def media_max_bytes() -> int:
    return _env_int("MEDIA_MAX_BYTES", 10 * 1024 * 1024)


def unlock_token_ttl_seconds() -> int:
    return _env_int("UNLOCK_TOKEN_TTL_SECONDS", 86400)


def answer_hash_iterations() -> int:
    return _env_int("ANSWER_HASH_ITERATIONS", 120_000)


def payment_webhook_secret() -> Optional[str]:
    v = os.getenv("PAYMENT_WEBHOOK_SECRET")
    if v is None:
        return None
    return v.strip() or None


def coupon_codes() -> Dict[str, Optional[int]]:
    """
    GIFT_COUPON_CODES="LOVE10,VIP:5" -> {"LOVE10": None, "VIP": 5}
    None = unlimited redemptions.
    """
    raw = os.getenv("GIFT_COUPON_CODES", "LOVE10")
    out: Dict[str, Optional[int]] = {}
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        code, _, limit = part.partition(":")
        code = code.strip().upper()
        if not code:
            continue
        max_redemptions: Optional[int] = None
        if limit.strip():
            try:
                max_redemptions = max(int(limit), 0)
            except ValueError:
                max_redemptions = None
        out[code] = max_redemptions
    return out
