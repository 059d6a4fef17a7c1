from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.db import db_health, init_db
from app.core.settings import app_version
from app.core.storage import ensure_storage_root, storage_health


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_storage_root()
    init_db()
    yield


app = FastAPI(title="Love Gift API", version=app_version(), lifespan=lifespan)

# === OBSERVABILITY FOUNDATIONS ===
# Contract locks:
# - /health keys: status, version, db, storage, last_error_summary
# - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
# - Error envelope keys: error, message, request_id, details
import uuid
from typing import Any, Dict, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.observability import emit

_last_error: Dict[str, Any] = {"summary": None}


def _err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int):
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": details,
        },
        headers=headers,
    )


@app.middleware("http")
async def _request_id_mw(request: Request, call_next):
    rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex.upper()
    request.state.request_id = rid
    emit("info", "http.request.start", f"{request.method} {request.url.path}", rid, __name__)
    try:
        resp = await call_next(request)
    except Exception as e:
        emit("error", "http.request.exception", str(e), rid, __name__)
        raise
    resp.headers["X-Request-Id"] = rid
    emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp,'status_code',None)}", rid, __name__)
    return resp


@app.exception_handler(StarletteHTTPException)
async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
    rid = getattr(request.state, "request_id", None)
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        # domain errors from app.core.errors
        return _err_envelope(
            str(detail["error"]),
            str(detail.get("message", "")),
            rid,
            detail.get("details"),
            exc.status_code,
        )
    return _err_envelope("http_error", str(detail), rid, {"status_code": exc.status_code}, exc.status_code)


@app.exception_handler(RequestValidationError)
async def _validation_exc_handler(request: Request, exc: RequestValidationError):
    rid = getattr(request.state, "request_id", None)
    return _err_envelope("validation_error", "request validation failed", rid, exc.errors(), 422)


@app.exception_handler(Exception)
async def _unhandled_exc_handler(request: Request, exc: Exception):
    rid = getattr(request.state, "request_id", None)
    _last_error["summary"] = f"{type(exc).__name__}: {exc}"
    emit("error", "http.unhandled", str(exc), rid, __name__, type=type(exc).__name__)
    return _err_envelope("internal_error", "internal server error", rid, {"type": type(exc).__name__}, 500)
# === END OBSERVABILITY FOUNDATIONS ===


@app.get("/health")
def health():
    db = db_health()
    storage = storage_health()
    ok = db.get("status") == "ok" and storage.get("status") == "ok"
    return {
        "status": "ok" if ok else "degraded",
        "version": app_version(),
        "db": db,
        "storage": storage,
        "last_error_summary": _last_error["summary"],
    }


# viewer first: /gifts/view/{share_token} must not be captured by /gifts/{gift_id}/...
from app.modules.viewer.router import router as viewer_router
from app.modules.gifts.router import router as gifts_router
from app.modules.locks.router import router as locks_router
from app.modules.publishing.router import router as publishing_router

app.include_router(viewer_router)
app.include_router(gifts_router)
app.include_router(locks_router)
app.include_router(publishing_router)
