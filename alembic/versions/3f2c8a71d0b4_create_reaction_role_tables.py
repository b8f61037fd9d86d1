"""Create folders, react_roles, react_messages and join_roles tables

Revision ID: 3f2c8a71d0b4
Revises:
Create Date: 2026-10-17 10:12:31.418220

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f2c8a71d0b4'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the reaction-role and join-role tables."""

    # --- folders ---
    op.create_table(
        "folders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("label", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_folders_guild", "folders", ["guild_id"])

    # --- react_roles ---
    op.create_table(
        "react_roles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column(
            "folder_id",
            sa.Integer,
            sa.ForeignKey("folders.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("role_id", sa.BigInteger, nullable=False),
        sa.Column("role_name", sa.String(100), nullable=False),
        sa.Column("emoji_id", sa.String(100), nullable=False),
        sa.UniqueConstraint("guild_id", "role_id", name="uq_react_role_guild_role"),
    )
    op.create_index("ix_react_roles_folder", "react_roles", ["folder_id"])

    # --- react_messages ---
    op.create_table(
        "react_messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("channel_id", sa.BigInteger, nullable=False),
        sa.Column("message_id", sa.BigInteger, nullable=False),
        sa.Column("emoji_id", sa.String(100), nullable=False),
        sa.Column("role_id", sa.BigInteger, nullable=False),
        sa.UniqueConstraint("message_id", "emoji_id", name="uq_react_message_emoji"),
    )
    op.create_index("ix_react_messages_guild", "react_messages", ["guild_id"])
    op.create_index("ix_react_messages_role", "react_messages", ["role_id"])

    # --- join_roles ---
    op.create_table(
        "join_roles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("role_id", sa.BigInteger, nullable=False),
        sa.UniqueConstraint("guild_id", "role_id", name="uq_join_role_guild_role"),
    )


def downgrade() -> None:
    """Drop the reaction-role and join-role tables."""
    op.drop_table("join_roles")
    op.drop_index("ix_react_messages_role", table_name="react_messages")
    op.drop_index("ix_react_messages_guild", table_name="react_messages")
    op.drop_table("react_messages")
    op.drop_index("ix_react_roles_folder", table_name="react_roles")
    op.drop_table("react_roles")
    op.drop_index("ix_folders_guild", table_name="folders")
    op.drop_table("folders")
