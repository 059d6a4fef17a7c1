from __future__ import annotations

import hmac
import secrets
from typing import Any, Dict, Optional

from app.core.db import connect, new_ulid, now_iso
from app.core.errors import Conflict, Forbidden, InvalidCoupon, PaymentRequired, UpstreamUnavailable
from app.core.observability import emit
from app.core.settings import coupon_codes, payment_webhook_secret
from app.modules.gifts.service import (
    STATUS_AWAITING_PAYMENT,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    fetch_gift_row,
    fetch_owned_row,
    row_to_gift,
)

PAYMENT_UNPAID = "unpaid"
PAYMENT_COUPON_REDEEMED = "coupon_redeemed"
PAYMENT_PAID = "paid"
SETTLED_PAYMENT_STATES = (PAYMENT_PAID, PAYMENT_COUPON_REDEEMED)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def seed_coupons() -> int:
    """Insert configured coupon codes; existing rows keep their redemption counts."""
    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        now = now_iso()
        n = 0
        for code, max_redemptions in coupon_codes().items():
            cur = conn.execute(
                "INSERT OR IGNORE INTO coupons (code, max_redemptions, redeemed_count, active, created_at) VALUES (?, ?, 0, 1, ?);",
                (code, max_redemptions, now),
            )
            if cur.rowcount == 1:
                n += 1
            else:
                conn.execute(
                    "UPDATE coupons SET max_redemptions=?, active=1 WHERE code=?;",
                    (max_redemptions, code),
                )
        conn.commit()
        return n
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()


def apply_coupon(gift_id: str, owner_id: str, code: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Redeem `code` for a gift.

    - same (gift, code) already redeemed -> no-op success, inventory untouched
    - unknown / inactive / exhausted code -> InvalidCoupon, nothing written
    - gift published or already settled another way -> Conflict
    """
    code = normalize_code(code)
    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        row = fetch_owned_row(conn, gift_id, owner_id)

        existing = conn.execute(
            "SELECT id FROM coupon_redemptions WHERE gift_id=? AND code=?;",
            (gift_id, code),
        ).fetchone()
        if existing is not None:
            conn.rollback()
            emit("info", "coupon.applied", "coupon already redeemed for gift", request_id, __name__,
                 gift_id=gift_id, code=code, already_redeemed=True)
            return row_to_gift(conn, row)

        if row["status"] == STATUS_PUBLISHED:
            raise Conflict("gift is already published")
        if row["payment_state"] != PAYMENT_UNPAID:
            raise Conflict("payment already settled for this gift", details={"payment_state": row["payment_state"]})

        coupon = conn.execute("SELECT * FROM coupons WHERE code=?;", (code,)).fetchone() if code else None
        exhausted = (
            coupon is not None
            and coupon["max_redemptions"] is not None
            and int(coupon["redeemed_count"]) >= int(coupon["max_redemptions"])
        )
        if coupon is None or not int(coupon["active"]) or exhausted:
            conn.rollback()
            emit("info", "coupon.rejected", "coupon rejected", request_id, __name__, gift_id=gift_id, code=code)
            raise InvalidCoupon()

        now = now_iso()
        conn.execute(
            "INSERT INTO coupon_redemptions (id, gift_id, code, created_at) VALUES (?, ?, ?, ?);",
            (new_ulid(), gift_id, code, now),
        )
        conn.execute("UPDATE coupons SET redeemed_count=redeemed_count+1 WHERE code=?;", (code,))
        conn.execute(
            "UPDATE gifts SET payment_state=?, updated_at=? WHERE id=?;",
            (PAYMENT_COUPON_REDEEMED, now, gift_id),
        )
        conn.commit()

        emit("info", "coupon.applied", "coupon redeemed", request_id, __name__, gift_id=gift_id, code=code)
        return row_to_gift(conn, fetch_gift_row(conn, gift_id))
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()


def check_payment_secret(presented: Optional[str]) -> None:
    expected = payment_webhook_secret()
    if expected is None:
        raise UpstreamUnavailable("payment confirmation is not configured")
    if not presented or not hmac.compare_digest(presented, expected):
        raise Forbidden("invalid payment confirmation credentials")


def mark_paid(gift_id: str, provider_ref: Optional[str] = None, request_id: Optional[str] = None) -> Dict[str, Any]:
    """External payment confirmation. Repeated confirmations are no-ops."""
    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        row = fetch_gift_row(conn, gift_id)
        if row["payment_state"] == PAYMENT_PAID or row["status"] == STATUS_PUBLISHED:
            conn.rollback()
            return row_to_gift(conn, row)

        conn.execute(
            "UPDATE gifts SET payment_state=?, updated_at=? WHERE id=?;",
            (PAYMENT_PAID, now_iso(), gift_id),
        )
        conn.commit()
        emit("info", "payment.confirmed", "payment confirmed", request_id, __name__,
             gift_id=gift_id, provider_ref=provider_ref)
        return row_to_gift(conn, fetch_gift_row(conn, gift_id))
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()


def publish(gift_id: str, owner_id: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    """
    The one irreversible transition: freeze config, mint share_token.

    Already published -> the existing record (retries see the same token).
    Unpaid -> PaymentRequired, and a draft moves to awaiting_payment.
    """
    conn = connect()
    try:
        conn.execute("BEGIN IMMEDIATE;")
        row = fetch_owned_row(conn, gift_id, owner_id)

        if row["status"] == STATUS_PUBLISHED:
            conn.rollback()
            return row_to_gift(conn, row)

        if row["payment_state"] not in SETTLED_PAYMENT_STATES:
            if row["status"] == STATUS_DRAFT:
                conn.execute(
                    "UPDATE gifts SET status=?, updated_at=? WHERE id=? AND status=?;",
                    (STATUS_AWAITING_PAYMENT, now_iso(), gift_id, STATUS_DRAFT),
                )
            conn.commit()
            emit("info", "gift.publish.payment_required", "publish refused: unpaid", request_id, __name__, gift_id=gift_id)
            raise PaymentRequired()

        now = now_iso()
        share_token = secrets.token_urlsafe(24)
        cur = conn.execute(
            """
            UPDATE gifts
            SET status=?, share_token=?, published_at=?, updated_at=?
            WHERE id=? AND status IN (?, ?) AND share_token IS NULL AND payment_state IN (?, ?);
            """,
            (
                STATUS_PUBLISHED, share_token, now, now,
                gift_id, STATUS_DRAFT, STATUS_AWAITING_PAYMENT,
                PAYMENT_PAID, PAYMENT_COUPON_REDEEMED,
            ),
        )
        conn.commit()

        if cur.rowcount == 1:
            emit("info", "gift.published", "gift published", request_id, __name__, gift_id=gift_id)
        return row_to_gift(conn, fetch_gift_row(conn, gift_id))
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()
