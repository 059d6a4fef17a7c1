"""
Domain error taxonomy.

Every error is an HTTPException so services can raise it directly (the same
way module services raise HTTPException) and main.py renders it through the
shared error envelope. `detail` is always {"error": <code>, "message": ...}.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException


class GiftError(HTTPException):
    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "bad request"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        detail: Dict[str, Any] = {"error": self.code, "message": message or self.default_message}
        if details:
            detail["details"] = details
        super().__init__(status_code=self.status_code, detail=detail)

    @property
    def message(self) -> str:
        return str(self.detail["message"])


class Unauthenticated(GiftError):
    status_code = 401
    code = "unauthenticated"
    default_message = "owner session required"


class Forbidden(GiftError):
    status_code = 403
    code = "forbidden"
    default_message = "not the owner of this gift"


class NotFound(GiftError):
    status_code = 404
    code = "not_found"
    default_message = "gift not found"


class Conflict(GiftError):
    status_code = 409
    code = "conflict"
    default_message = "illegal state transition"


class IncorrectAnswer(GiftError):
    # identical for "wrong answer", "no such gift" and "no challenge"
    status_code = 403
    code = "incorrect_answer"
    default_message = "incorrect answer"


class InvalidCoupon(GiftError):
    status_code = 422
    code = "invalid_coupon"
    default_message = "coupon code is not valid"


class PaymentRequired(GiftError):
    status_code = 402
    code = "payment_required"
    default_message = "payment or coupon required before publishing"


class UpstreamUnavailable(GiftError):
    status_code = 503
    code = "upstream_unavailable"
    default_message = "upstream service unavailable"


class BadRequest(GiftError):
    status_code = 400
    code = "bad_request"
    default_message = "bad request"
