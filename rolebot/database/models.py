"""
rolebot.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- folders         — Operator-defined groups of reaction roles (per guild)
- react_roles     — A role + emoji pair, optionally filed in a folder
- react_messages  — Placement of a react role on a posted message
- join_roles      — Provisional roles granted on member join (ordered)

Discord identifiers are snowflakes stored as ``BigInteger``.  Emoji keys
are strings: a custom emoji's numeric id, or the unicode text itself.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all RoleBot ORM models."""


# ---------------------------------------------------------------------------
# Folders — ordered by creation (id) within a guild
# ---------------------------------------------------------------------------
class FolderRow(Base):
    __tablename__ = "folders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    roles: Mapped[list[ReactRoleRow]] = relationship(
        back_populates="folder",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_folders_guild", "guild_id"),
    )

    def __repr__(self) -> str:
        return f"<Folder id={self.id} guild={self.guild_id} label={self.label!r}>"


# ---------------------------------------------------------------------------
# React roles — one role bound to one emoji
# ---------------------------------------------------------------------------
class ReactRoleRow(Base):
    __tablename__ = "react_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    folder_id: Mapped[int | None] = mapped_column(
        ForeignKey("folders.id", ondelete="CASCADE"), default=None
    )
    role_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    role_name: Mapped[str] = mapped_column(String(100), nullable=False)
    emoji_id: Mapped[str] = mapped_column(String(100), nullable=False)

    folder: Mapped[FolderRow | None] = relationship(back_populates="roles")

    __table_args__ = (
        UniqueConstraint("guild_id", "role_id", name="uq_react_role_guild_role"),
        Index("ix_react_roles_folder", "folder_id"),
    )

    def __repr__(self) -> str:
        return f"<ReactRole role={self.role_id} emoji={self.emoji_id!r} folder={self.folder_id}>"


# ---------------------------------------------------------------------------
# React messages — which emoji on which message grants which role
# ---------------------------------------------------------------------------
class ReactMessageRow(Base):
    __tablename__ = "react_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    message_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    emoji_id: Mapped[str] = mapped_column(String(100), nullable=False)
    role_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("message_id", "emoji_id", name="uq_react_message_emoji"),
        Index("ix_react_messages_guild", "guild_id"),
        Index("ix_react_messages_role", "role_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReactMessage msg={self.message_id} emoji={self.emoji_id!r} "
            f"role={self.role_id}>"
        )


# ---------------------------------------------------------------------------
# Join roles — first row per guild anchors the handoff heuristic
# ---------------------------------------------------------------------------
class JoinRoleRow(Base):
    __tablename__ = "join_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    role_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("guild_id", "role_id", name="uq_join_role_guild_role"),
    )

    def __repr__(self) -> str:
        return f"<JoinRole guild={self.guild_id} role={self.role_id}>"
