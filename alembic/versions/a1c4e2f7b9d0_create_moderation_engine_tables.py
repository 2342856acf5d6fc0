"""create moderation engine tables

Revision ID: a1c4e2f7b9d0
Revises:
Create Date: 2026-10-18 12:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c4e2f7b9d0"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "chat_settings",
        sa.Column("chat_id", sa.BigInteger(), primary_key=True),
        sa.Column("flood_limit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("flood_timer", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("flood_mode", sa.String(length=16), nullable=False, server_default="mute"),
        sa.Column("flood_clear_all", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("captcha_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("captcha_mode", sa.String(length=16), nullable=False, server_default="button"),
        sa.Column("captcha_text", sa.String(length=64), nullable=True),
        sa.Column("captcha_kick", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("captcha_kick_time", sa.Integer(), nullable=False, server_default="120"),
        sa.Column("antiraid_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("antiraid_expires_at", sa.DateTime(), nullable=True),
        sa.Column("raid_time", sa.Integer(), nullable=False, server_default="21600"),
        sa.Column("auto_antiraid_limit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "scheduled_actions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("action_type", sa.String(length=32), nullable=False),
        sa.Column("execute_at", sa.DateTime(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_scheduled_actions_due", "scheduled_actions", ["completed", "execute_at"])
    op.create_index("ix_scheduled_actions_chat_user", "scheduled_actions", ["chat_id", "user_id"])

    op.create_table(
        "captcha_challenges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("message_id", sa.BigInteger(), nullable=True),
        sa.Column("answer", sa.String(length=32), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("chat_id", "user_id", name="uix_captcha_chat_user"),
    )
    op.create_table(
        "approved_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("chat_id", "user_id", name="uix_approved_chat_user"),
    )


def downgrade() -> None:
    op.drop_table("approved_users")
    op.drop_table("captcha_challenges")
    op.drop_index("ix_scheduled_actions_chat_user", table_name="scheduled_actions")
    op.drop_index("ix_scheduled_actions_due", table_name="scheduled_actions")
    op.drop_table("scheduled_actions")
    op.drop_table("chat_settings")
