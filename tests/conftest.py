"""Pytest configuration: every test gets its own sqlite file and storage root."""
from typing import Any, Dict

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///" + (tmp_path / "app.db").as_posix())
    monkeypatch.setenv("STORAGE_ROOT", (tmp_path / "storage").as_posix())
    monkeypatch.setenv("ANSWER_HASH_ITERATIONS", "1000")
    monkeypatch.setenv("GIFT_COUPON_CODES", "LOVE10")
    monkeypatch.delenv("PAYMENT_WEBHOOK_SECRET", raising=False)
    monkeypatch.delenv("MEDIA_MAX_BYTES", raising=False)
    monkeypatch.delenv("UNLOCK_TOKEN_TTL_SECONDS", raising=False)

    from app.core.db import init_db

    init_db()
    yield


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from app.main import app

    return TestClient(app)


@pytest.fixture
def owner_headers() -> Dict[str, str]:
    return {"X-Owner-Id": "owner-alice"}


def make_config(**groups: Any) -> Dict[str, Any]:
    cfg: Dict[str, Any] = {"identity": {"sender_name": "Alex", "recipient_name": "Sam"}}
    cfg.update(groups)
    return cfg


@pytest.fixture
def config_factory():
    return make_config


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
