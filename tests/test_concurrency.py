import threading

from app.core.db import connect
from app.modules.gifts import service as gifts
from app.modules.gifts.schemas import ContentConfiguration
from app.modules.publishing import service as publishing

from conftest import make_config


def _draft():
    return gifts.create_draft("owner-alice", ContentConfiguration.model_validate(make_config()))


def _run_threads(n, fn):
    """Start n threads behind a barrier; returns (results, errors) by thread index."""
    barrier = threading.Barrier(n)
    results = [None] * n
    errors = [None] * n

    def _worker(i):
        barrier.wait()
        try:
            results[i] = fn(i)
        except Exception as e:
            errors[i] = e

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results, errors


def test_concurrent_publish_mints_a_single_share_token():
    g = _draft()
    publishing.apply_coupon(g["id"], "owner-alice", "LOVE10")
    results, errors = _run_threads(8, lambda i: publishing.publish(g["id"], "owner-alice"))
    assert errors == [None] * 8
    tokens = {r["share_token"] for r in results}
    assert len(tokens) == 1
    assert None not in tokens
    assert gifts.get_gift(g["id"], "owner-alice")["share_token"] in tokens


def test_concurrent_autosaves_lose_no_group():
    g = _draft()
    patches = [
        {"message": {"body": "m"}},
        {"puzzle": {"secret_word": "w"}},
        {"interaction": {"question": "q?"}},
        {"journey": {"from_location": "Paris", "to_location": "Rome"}},
        {"visuals": {"love_level": 42}},
        {"closing": {"final_message": "c"}},
        {"draft": {"notes": "n"}},
    ]
    results, errors = _run_threads(len(patches), lambda i: gifts.update_draft(g["id"], "owner-alice", patches[i]))
    assert errors == [None] * len(patches)

    final = gifts.get_gift(g["id"], "owner-alice")
    assert final["version"] == 1 + len(patches)
    cfg = final["config"]
    assert cfg.message.body == "m"
    assert cfg.puzzle.secret_word == "w"
    assert cfg.interaction.question == "q?"
    assert cfg.journey.to_location == "Rome"
    assert cfg.visuals.love_level == 42
    assert cfg.closing.final_message == "c"
    assert cfg.draft.notes == "n"
    assert sorted(r["version"] for r in results) == list(range(2, 2 + len(patches)))


def _redeemed_count(code):
    conn = connect()
    try:
        return conn.execute("SELECT redeemed_count FROM coupons WHERE code=?;", (code,)).fetchone()[0]
    finally:
        conn.close()


def test_concurrent_same_coupon_on_one_gift_counts_once():
    g = _draft()
    results, errors = _run_threads(8, lambda i: publishing.apply_coupon(g["id"], "owner-alice", "LOVE10"))
    assert errors == [None] * 8
    assert {r["payment_state"] for r in results} == {"coupon_redeemed"}
    assert _redeemed_count("LOVE10") == 1
    conn = connect()
    try:
        rows = conn.execute("SELECT COUNT(*) FROM coupon_redemptions WHERE gift_id=?;", (g["id"],)).fetchone()[0]
    finally:
        conn.close()
    assert rows == 1


def test_concurrent_redemptions_respect_the_limit(monkeypatch):
    from app.core.errors import InvalidCoupon

    monkeypatch.setenv("GIFT_COUPON_CODES", "ONCE:1")
    publishing.seed_coupons()
    drafts = [_draft() for _ in range(8)]
    results, errors = _run_threads(8, lambda i: publishing.apply_coupon(drafts[i]["id"], "owner-alice", "ONCE"))
    assert sum(1 for r in results if r is not None) == 1
    assert all(isinstance(e, InvalidCoupon) for e in errors if e is not None)
    assert _redeemed_count("ONCE") == 1
