import pytest

from app.core.errors import Forbidden, NotFound
from app.modules.gifts import service as gifts
from app.modules.gifts.schemas import ContentConfiguration
from app.modules.viewer import service as viewer

from conftest import make_config
from helpers import published_gift


def test_unpublished_or_unknown_share_token_is_not_found():
    with pytest.raises(NotFound):
        viewer.resolve("does-not-exist")


def test_full_view_strips_authoring_state_and_lists_stages():
    g = published_gift(
        message={"body": "Line one\nLine two", "letters": ["Dear Sam"]},
        interaction={"question": "Will you?", "messages": ["hi", "hello"]},
        draft={"builder_step": 3, "notes": "private"},
    )
    view = viewer.resolve(g["share_token"])
    assert view["locked"] is False
    assert view["config"].draft is None
    stages = [s.stage.value for s in view["stages"]]
    assert stages == [
        "entry", "intro_animation", "opening_animation", "emotional_beat", "message_reveal",
        "letters", "conversation", "proposal", "celebration",
    ]


def test_locked_view_discloses_only_question_and_hint():
    g = published_gift(
        question="Our song?",
        answer="Yellow",
        hint="Coldplay",
        identity={"sender_name": "Secret Admirer Jo", "recipient_name": "Sam"},
        message={"body": "secret"},
    )
    for token in (None, "bogus"):
        view = viewer.resolve(g["share_token"], unlock_token=token)
        assert view == {"locked": True, "question": "Our song?", "hint": "Coldplay"}
        assert "Secret Admirer Jo" not in str(view)


def test_unlocked_gift_ignores_a_bogus_unlock_token():
    g = published_gift(message={"body": "hello"})
    view = viewer.resolve(g["share_token"], unlock_token="bogus")
    assert view["locked"] is False
    assert view["config"].message.body == "hello"


def test_preview_is_owner_only_and_bypasses_the_lock():
    d = gifts.create_draft("owner-alice", ContentConfiguration.model_validate(make_config(message={"body": "x"})))
    from app.modules.locks import service as locks

    locks.set_challenge(d["id"], "owner-alice", "Q?", "A")
    view = viewer.preview(d["id"], "owner-alice")
    assert view["locked"] is False
    assert view["share_token"] is None
    with pytest.raises(Forbidden):
        viewer.preview(d["id"], "owner-bob")
