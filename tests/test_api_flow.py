from conftest import PNG_BYTES, make_config


def test_health_reports_db_and_storage(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert set(body) >= {"status", "version", "db", "storage", "last_error_summary"}


def test_missing_owner_is_unauthenticated_with_envelope(client):
    r = client.post("/gifts", json=make_config(), headers={"X-Request-Id": "RID-1"})
    assert r.status_code == 401
    body = r.json()
    assert body["error"] == "unauthenticated"
    assert body["request_id"] == "RID-1"
    assert r.headers["X-Request-Id"] == "RID-1"


def test_validation_errors_use_the_envelope(client, owner_headers):
    r = client.post("/gifts", json={"identity": {"sender_name": "", "recipient_name": "Sam"}}, headers=owner_headers)
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"


def test_full_sender_to_recipient_flow(client, owner_headers):
    created = client.post("/gifts", json=make_config(message={"body": "I love you\nAlways"}), headers=owner_headers)
    assert created.status_code == 201
    gift = created.json()
    gid = gift["id"]

    up = client.post(
        f"/gifts/{gid}/media",
        files=[("files", ("us.png", PNG_BYTES, "image/png"))],
        headers=owner_headers,
    )
    assert up.status_code == 201
    media_id = up.json()[0]["id"]
    assert client.get(f"/media/{media_id}").content == PNG_BYTES

    upd = client.put(
        f"/gifts/{gid}",
        json={"visuals": {"photos": [media_id], "love_level": 95}, "expected_version": 1},
        headers=owner_headers,
    )
    assert upd.status_code == 200
    assert upd.json()["version"] == 2

    stale = client.put(f"/gifts/{gid}", json={"closing": {"final_message": "x"}, "expected_version": 1}, headers=owner_headers)
    assert stale.status_code == 409
    assert stale.json()["error"] == "conflict"

    lock = client.put(f"/gifts/{gid}/lock", json={"question": "Where did we meet?", "answer": "Paris"}, headers=owner_headers)
    assert lock.json()["enabled"] is True

    unpaid = client.post(f"/gifts/{gid}/publish", headers=owner_headers)
    assert unpaid.status_code == 402
    assert unpaid.json()["error"] == "payment_required"

    bad = client.post(f"/gifts/{gid}/apply-coupon", json={"code": "FAKE"}, headers=owner_headers)
    assert bad.status_code == 422
    assert bad.json()["error"] == "invalid_coupon"

    ok = client.post(f"/gifts/{gid}/apply-coupon", json={"code": "love10"}, headers=owner_headers)
    assert ok.json()["payment_state"] == "coupon_redeemed"

    pub = client.post(f"/gifts/{gid}/publish", headers=owner_headers)
    assert pub.status_code == 200
    share = pub.json()["share_token"]
    assert share

    locked = client.get(f"/gifts/view/{share}")
    assert locked.json()["locked"] is True
    assert "config" not in locked.json()

    wrong = client.post(f"/gifts/{share}/verify-secret", json={"answer": "London"})
    assert wrong.status_code == 403
    assert wrong.json()["error"] == "incorrect_answer"

    good = client.post(f"/gifts/{share}/verify-secret", json={"answer": " PARIS "})
    token = good.json()["unlock_token"]

    full = client.get(f"/gifts/view/{share}", params={"unlock_token": token}).json()
    assert full["locked"] is False
    assert full["config"]["visuals"]["photos"] == [media_id]
    assert full["media_refs"][0]["url"] == f"/media/{media_id}"
    assert [s["stage"] for s in full["stages"]][:2] == ["entry", "intro_animation"]
    assert "photos" in [s["stage"] for s in full["stages"]]

    frozen = client.put(f"/gifts/{gid}", json={"closing": {"final_message": "late"}}, headers=owner_headers)
    assert frozen.status_code == 409


def test_other_owner_is_forbidden(client, owner_headers):
    gid = client.post("/gifts", json=make_config(), headers=owner_headers).json()["id"]
    r = client.get(f"/gifts/{gid}", headers={"X-Owner-Id": "owner-bob"})
    assert r.status_code == 403
    assert r.json()["error"] == "forbidden"


def test_mark_paid_webhook(client, owner_headers, monkeypatch):
    gid = client.post("/gifts", json=make_config(), headers=owner_headers).json()["id"]
    assert client.post(f"/gifts/{gid}/mark-paid").status_code == 503
    monkeypatch.setenv("PAYMENT_WEBHOOK_SECRET", "hook")
    assert client.post(f"/gifts/{gid}/mark-paid", headers={"X-Payment-Secret": "nope"}).status_code == 403
    r = client.post(f"/gifts/{gid}/mark-paid", json={"provider_ref": "pi_9"}, headers={"X-Payment-Secret": "hook"})
    assert r.status_code == 200
    assert r.json()["payment_state"] == "paid"


def test_preview_and_delete(client, owner_headers):
    gid = client.post("/gifts", json=make_config(draft={"notes": "n"}), headers=owner_headers).json()["id"]
    prev = client.get(f"/gifts/{gid}/preview", headers=owner_headers)
    assert prev.status_code == 200
    assert prev.json()["config"]["draft"] is None
    assert client.delete(f"/gifts/{gid}", headers=owner_headers).json()["status"] == "deleted"
    assert client.get(f"/gifts/{gid}", headers=owner_headers).status_code == 404


def test_lifespan_initializes_storage_and_schema(tmp_path, monkeypatch):
    from fastapi.testclient import TestClient

    from app.main import app

    root = tmp_path / "fresh-storage"
    monkeypatch.setenv("STORAGE_ROOT", root.as_posix())
    with TestClient(app) as c:
        assert root.is_dir()
        assert c.get("/health").json()["storage"]["status"] == "ok"


def test_oversized_upload_is_rejected(client, owner_headers, monkeypatch):
    gid = client.post("/gifts", json=make_config(), headers=owner_headers).json()["id"]
    monkeypatch.setenv("MEDIA_MAX_BYTES", "16")
    r = client.post(
        f"/gifts/{gid}/media",
        files=[("files", ("big.png", PNG_BYTES * 4, "image/png"))],
        headers=owner_headers,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "bad_request"
    assert r.json()["details"]["max_bytes"] == 16
    assert client.get(f"/gifts/{gid}", headers=owner_headers).json()["media_refs"] == []
