"""gifts core (gifts/gift_media/unlock_tokens/coupons/coupon_redemptions)

Revision ID: 0001_gifts_core
Revises:
Create Date: 2026-02-09
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_gifts_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "gifts",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("payment_state", sa.Text(), nullable=False, server_default="unpaid"),
        sa.Column("config_json", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("lock_question", sa.Text(), nullable=True),
        sa.Column("lock_answer_hash", sa.Text(), nullable=True),
        sa.Column("lock_answer_salt", sa.Text(), nullable=True),
        sa.Column("lock_hint", sa.Text(), nullable=True),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("share_token", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.Column("published_at", sa.Text(), nullable=True),
    )
    op.create_index("ix_gifts_owner_id", "gifts", ["owner_id"], unique=False)
    op.create_index("ix_gifts_status", "gifts", ["status"], unique=False)
    op.create_index("ix_gifts_share_token", "gifts", ["share_token"], unique=True)

    op.create_table(
        "gift_media",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("gift_id", sa.Text(), sa.ForeignKey("gifts.id"), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.Text(), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_gift_media_gift_id", "gift_media", ["gift_id"], unique=False)

    op.create_table(
        "unlock_tokens",
        sa.Column("token", sa.Text(), primary_key=True),
        sa.Column("gift_id", sa.Text(), sa.ForeignKey("gifts.id"), nullable=False),
        sa.Column("lock_version", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_unlock_tokens_gift_id", "unlock_tokens", ["gift_id"], unique=False)

    op.create_table(
        "coupons",
        sa.Column("code", sa.Text(), primary_key=True),
        sa.Column("max_redemptions", sa.Integer(), nullable=True),
        sa.Column("redeemed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.Text(), nullable=False),
    )

    op.create_table(
        "coupon_redemptions",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("gift_id", sa.Text(), sa.ForeignKey("gifts.id"), nullable=False),
        sa.Column("code", sa.Text(), sa.ForeignKey("coupons.code"), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.UniqueConstraint("gift_id", "code", name="uq_coupon_redemptions_gift_code"),
    )
    op.create_index("ix_coupon_redemptions_gift_id", "coupon_redemptions", ["gift_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_coupon_redemptions_gift_id", table_name="coupon_redemptions")
    op.drop_table("coupon_redemptions")
    op.drop_table("coupons")
    op.drop_index("ix_unlock_tokens_gift_id", table_name="unlock_tokens")
    op.drop_table("unlock_tokens")
    op.drop_index("ix_gift_media_gift_id", table_name="gift_media")
    op.drop_table("gift_media")
    op.drop_index("ix_gifts_share_token", table_name="gifts")
    op.drop_index("ix_gifts_status", table_name="gifts")
    op.drop_index("ix_gifts_owner_id", table_name="gifts")
    op.drop_table("gifts")
