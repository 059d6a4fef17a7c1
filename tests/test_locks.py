import pytest

from app.core.errors import BadRequest, Conflict, IncorrectAnswer
from app.modules.gifts import service as gifts
from app.modules.gifts.schemas import ContentConfiguration
from app.modules.locks import service as locks
from app.modules.viewer import service as viewer

from conftest import make_config
from helpers import published_gift


def test_answer_normalization_ignores_case_and_surrounding_space():
    assert locks.normalize_answer("  PaRiS ") == "paris"
    assert locks.hash_answer("Paris", "ab" * 16) == locks.hash_answer(" paris  ", "ab" * 16)


def test_paris_challenge_issues_token_that_unlocks_view():
    g = published_gift(question="Where did we meet?", answer="Paris", hint="City of light")
    share = g["share_token"]

    locked = viewer.resolve(share)
    assert locked["locked"] is True
    assert locked["question"] == "Where did we meet?"
    assert locked["hint"] == "City of light"
    assert "config" not in locked

    tok = locks.verify(share, "  paris ")
    full = viewer.resolve(share, tok["unlock_token"])
    assert full["locked"] is False


def test_all_failures_look_the_same():
    g = published_gift(question="Where did we meet?", answer="Paris")
    no_lock = published_gift()
    errors = []
    for token, answer in ((g["share_token"], "London"), ("unknown-token", "Paris"), (no_lock["share_token"], "Paris")):
        with pytest.raises(IncorrectAnswer) as exc:
            locks.verify(token, answer)
        errors.append((exc.value.status_code, exc.value.detail))
    assert len(set(map(str, errors))) == 1


def test_verify_on_unpublished_gift_is_rejected():
    g = gifts.create_draft("owner-alice", ContentConfiguration.model_validate(make_config()))
    locks.set_challenge(g["id"], "owner-alice", "Q?", "A")
    with pytest.raises(IncorrectAnswer):
        locks.verify("anything", "A")


def test_expired_token_no_longer_unlocks(monkeypatch):
    g = published_gift(question="Q?", answer="A")
    now = [1_000_000]
    monkeypatch.setattr(locks, "_now_ts", lambda: now[0])
    tok = locks.verify(g["share_token"], "a")
    assert tok["expires_at"] == 1_000_000 + 86400
    assert viewer.resolve(g["share_token"], tok["unlock_token"])["locked"] is False
    now[0] += 86400
    assert viewer.resolve(g["share_token"], tok["unlock_token"])["locked"] is True


def test_changing_the_lock_invalidates_old_tokens():
    g = gifts.create_draft("owner-alice", ContentConfiguration.model_validate(make_config()))
    first = locks.set_challenge(g["id"], "owner-alice", "Q1?", "one")
    assert first["enabled"] is True
    locks.set_challenge(g["id"], "owner-alice", "Q2?", "two")
    row = gifts.get_gift(g["id"], "owner-alice")
    assert row["lock"] == {"question": "Q2?", "hint": None}
    cleared = locks.clear_challenge(g["id"], "owner-alice")
    assert cleared["enabled"] is False
    assert gifts.get_gift(g["id"], "owner-alice")["lock"] is None


def test_lock_requires_question_and_answer_and_a_draft():
    g = published_gift()
    with pytest.raises(Conflict):
        locks.set_challenge(g["id"], "owner-alice", "Q?", "A")
    d = gifts.create_draft("owner-alice", ContentConfiguration.model_validate(make_config()))
    with pytest.raises(BadRequest):
        locks.set_challenge(d["id"], "owner-alice", "Q?", "   ")


def test_purge_removes_only_expired_tokens(monkeypatch):
    g = published_gift(question="Q?", answer="A")
    monkeypatch.setattr(locks, "_now_ts", lambda: 100)
    locks.verify(g["share_token"], "A")
    assert locks.purge_expired_tokens() == 0
    monkeypatch.setattr(locks, "_now_ts", lambda: 100 + 86400)
    assert locks.purge_expired_tokens() == 1
