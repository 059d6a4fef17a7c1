from typing import Any, Dict, Optional

from app.modules.gifts import service as gifts
from app.modules.gifts.schemas import ContentConfiguration
from app.modules.locks import service as locks
from app.modules.publishing import service as publishing

from conftest import make_config


def published_gift(
    owner: str = "owner-alice",
    *,
    question: Optional[str] = None,
    answer: Optional[str] = None,
    hint: Optional[str] = None,
    **groups: Any,
) -> Dict[str, Any]:
    g = gifts.create_draft(owner, ContentConfiguration.model_validate(make_config(**groups)))
    if question is not None:
        locks.set_challenge(g["id"], owner, question, answer or "", hint)
    publishing.apply_coupon(g["id"], owner, "LOVE10")
    return publishing.publish(g["id"], owner)
