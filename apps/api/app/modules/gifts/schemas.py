from __future__ import annotations

from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

GiftStatus = Literal["draft", "awaiting_payment", "published"]
PaymentState = Literal["unpaid", "coupon_redeemed", "paid"]
StyleChoice = Literal["pink", "red", "classic"]


# -------------------------
# Content configuration groups
# -------------------------
class IdentityGroup(BaseModel):
    sender_name: str = Field(min_length=1)
    recipient_name: str = Field(min_length=1)
    # day-of-month or a free-form date string
    date: Optional[Union[int, str]] = None

    @field_validator("sender_name", "recipient_name")
    @classmethod
    def _strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class LoveCoupon(BaseModel):
    title: str = Field(min_length=1)
    subtitle: str = ""


class MessageGroup(BaseModel):
    body: str = ""
    letters: List[str] = Field(default_factory=list)
    coupons: List[LoveCoupon] = Field(default_factory=list)

    def lines(self) -> List[str]:
        return [ln.strip() for ln in self.body.splitlines() if ln.strip()]


class PuzzleGroup(BaseModel):
    secret_word: str = Field(min_length=1)
    hint: Optional[str] = None


class InteractionGroup(BaseModel):
    question: Optional[str] = None
    activity: Optional[str] = None
    # acknowledgements shown when the proposal is declined
    responses: List[str] = Field(default_factory=list)
    activity_labels: Dict[str, str] = Field(default_factory=dict)
    # conversation / memory messages, streamed one at a time
    messages: List[str] = Field(default_factory=list)


class JourneyGroup(BaseModel):
    from_location: Optional[str] = None
    to_location: Optional[str] = None

    def is_complete(self) -> bool:
        return bool((self.from_location or "").strip()) and bool((self.to_location or "").strip())


class VisualsGroup(BaseModel):
    photos: List[str] = Field(default_factory=list)  # media ids
    love_level: int = Field(default=80, ge=0, le=100)
    style_choice: StyleChoice = "pink"


class ClosingGroup(BaseModel):
    final_message: str = ""


class DraftGroup(BaseModel):
    # authoring-only state, never shown to recipients
    builder_step: Optional[int] = None
    notes: Optional[str] = None


class ContentConfiguration(BaseModel):
    identity: IdentityGroup
    message: Optional[MessageGroup] = None
    puzzle: Optional[PuzzleGroup] = None
    interaction: Optional[InteractionGroup] = None
    journey: Optional[JourneyGroup] = None
    visuals: Optional[VisualsGroup] = None
    closing: Optional[ClosingGroup] = None
    draft: Optional[DraftGroup] = None

    # -- presence checks used by stage gating --
    def has_letters(self) -> bool:
        return self.message is not None and len([x for x in self.message.letters if x.strip()]) > 0

    def has_photos(self) -> bool:
        return self.visuals is not None and len(self.visuals.photos) > 0

    def has_conversation(self) -> bool:
        return self.interaction is not None and len([x for x in self.interaction.messages if x.strip()]) > 0

    def has_journey(self) -> bool:
        return self.journey is not None and self.journey.is_complete()

    def has_proposal(self) -> bool:
        return self.interaction is not None and bool((self.interaction.question or "").strip())

    def message_lines(self) -> List[str]:
        return self.message.lines() if self.message is not None else []

    def public(self) -> "ContentConfiguration":
        return self.model_copy(update={"draft": None})


CONFIG_GROUPS = ("identity", "message", "puzzle", "interaction", "journey", "visuals", "closing", "draft")


# -------------------------
# API payloads
# -------------------------
class GiftPatchIn(BaseModel):
    """
    Group-level partial update: every supplied group replaces the stored one
    wholesale; an explicit null clears an optional group.
    """
    identity: Optional[IdentityGroup] = None
    message: Optional[MessageGroup] = None
    puzzle: Optional[PuzzleGroup] = None
    interaction: Optional[InteractionGroup] = None
    journey: Optional[JourneyGroup] = None
    visuals: Optional[VisualsGroup] = None
    closing: Optional[ClosingGroup] = None
    draft: Optional[DraftGroup] = None
    expected_version: Optional[int] = None


class MediaRefOut(BaseModel):
    id: str
    url: str
    mime_type: Optional[str] = None


class LockSummaryOut(BaseModel):
    question: str
    hint: Optional[str] = None


class GiftOut(BaseModel):
    id: str
    status: GiftStatus
    payment_state: PaymentState
    version: int
    config: ContentConfiguration
    lock: Optional[LockSummaryOut] = None
    share_token: Optional[str] = None
    media_refs: List[MediaRefOut] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None


class GiftDeleteOut(BaseModel):
    id: str
    status: str = "deleted"
