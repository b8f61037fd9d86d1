"""
rolebot.services.reaction_store — Persistence Collaborator
===========================================================

Synchronous read/write functions over the RoleBot tables.  Each function
opens its own session and is one transaction; callers in async code wrap
them with :func:`rolebot.database.engine.run_db`.

Every :class:`~sqlalchemy.exc.SQLAlchemyError` is re-raised as
:class:`~rolebot.engine.errors.PersistenceFailure`, so the registry only
has to know about the engine's own error taxonomy.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterable
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rolebot.database.engine import get_session
from rolebot.database.models import FolderRow, JoinRoleRow, ReactMessageRow, ReactRoleRow
from rolebot.engine.errors import PersistenceFailure
from rolebot.engine.records import FolderSummary, JoinRole, RoleBinding
from rolebot.engine.records import ReactMessageRow as ReactMessageRecord

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def _persistence(func: Callable[P, T]) -> Callable[P, T]:
    """Translate SQLAlchemy failures into :class:`PersistenceFailure`."""

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Persistence call %s failed: %s", func.__name__, exc)
            raise PersistenceFailure(f"{func.__name__} failed: {exc}") from exc

    return wrapper


def _binding(row: ReactRoleRow) -> RoleBinding:
    return RoleBinding(role_id=row.role_id, role_name=row.role_name, emoji_id=row.emoji_id)


def _placement(row: ReactMessageRow) -> ReactMessageRecord:
    return ReactMessageRecord(
        guild_id=row.guild_id,
        channel_id=row.channel_id,
        message_id=row.message_id,
        emoji_id=row.emoji_id,
        role_id=row.role_id,
    )


# ---------------------------------------------------------------------------
# React messages
# ---------------------------------------------------------------------------
@_persistence
def get_react_messages(engine: Engine) -> list[ReactMessageRecord]:
    """Every persisted (message, emoji) → role placement, for boot."""
    with Session(engine) as session:
        rows = session.scalars(select(ReactMessageRow).order_by(ReactMessageRow.id)).all()
        return [_placement(r) for r in rows]


@_persistence
def get_react_messages_by_message(engine: Engine, message_id: int) -> list[ReactMessageRecord]:
    with Session(engine) as session:
        rows = session.scalars(
            select(ReactMessageRow)
            .where(ReactMessageRow.message_id == message_id)
            .order_by(ReactMessageRow.id)
        ).all()
        return [_placement(r) for r in rows]


@_persistence
def add_react_messages(
    engine: Engine,
    guild_id: int,
    channel_id: int,
    message_id: int,
    bindings: Iterable[RoleBinding],
) -> list[ReactMessageRecord]:
    """Place every binding on *message_id* in one transaction."""
    with get_session(engine) as session:
        rows = [
            ReactMessageRow(
                guild_id=guild_id,
                channel_id=channel_id,
                message_id=message_id,
                emoji_id=b.emoji_id,
                role_id=b.role_id,
            )
            for b in bindings
        ]
        session.add_all(rows)
        session.flush()
        return [_placement(r) for r in rows]


@_persistence
def delete_react_message_by_role_id(engine: Engine, role_id: int) -> int:
    with get_session(engine) as session:
        result = session.execute(
            delete(ReactMessageRow).where(ReactMessageRow.role_id == role_id)
        )
        return result.rowcount or 0


@_persistence
def delete_react_messages_by_guild(engine: Engine, guild_id: int) -> int:
    with get_session(engine) as session:
        result = session.execute(
            delete(ReactMessageRow).where(ReactMessageRow.guild_id == guild_id)
        )
        return result.rowcount or 0


# ---------------------------------------------------------------------------
# React roles (bindings)
# ---------------------------------------------------------------------------
@_persistence
def get_role_bindings_by_guild(engine: Engine, guild_id: int) -> list[RoleBinding]:
    with Session(engine) as session:
        rows = session.scalars(
            select(ReactRoleRow)
            .where(ReactRoleRow.guild_id == guild_id)
            .order_by(ReactRoleRow.id)
        ).all()
        return [_binding(r) for r in rows]


@_persistence
def add_react_role(
    engine: Engine,
    guild_id: int,
    folder_id: int | None,
    binding: RoleBinding,
) -> RoleBinding:
    with get_session(engine) as session:
        session.add(ReactRoleRow(
            guild_id=guild_id,
            folder_id=folder_id,
            role_id=binding.role_id,
            role_name=binding.role_name,
            emoji_id=binding.emoji_id,
        ))
    return binding


@_persistence
def delete_react_role_by_role_id(engine: Engine, role_id: int) -> int:
    with get_session(engine) as session:
        result = session.execute(delete(ReactRoleRow).where(ReactRoleRow.role_id == role_id))
        return result.rowcount or 0


@_persistence
def delete_all_react_roles_by_guild(engine: Engine, guild_id: int) -> int:
    with get_session(engine) as session:
        result = session.execute(delete(ReactRoleRow).where(ReactRoleRow.guild_id == guild_id))
        return result.rowcount or 0


@_persistence
def update_role_name(engine: Engine, role_id: int, role_name: str) -> int:
    with get_session(engine) as session:
        result = session.execute(
            update(ReactRoleRow)
            .where(ReactRoleRow.role_id == role_id)
            .values(role_name=role_name)
        )
        return result.rowcount or 0


# ---------------------------------------------------------------------------
# Join roles
# ---------------------------------------------------------------------------
@_persistence
def get_join_roles(engine: Engine, guild_id: int) -> list[JoinRole]:
    """Join roles in creation order; the first one anchors the handoff."""
    with Session(engine) as session:
        rows = session.scalars(
            select(JoinRoleRow)
            .where(JoinRoleRow.guild_id == guild_id)
            .order_by(JoinRoleRow.id)
        ).all()
        return [JoinRole(role_id=r.role_id) for r in rows]


@_persistence
def add_join_role(engine: Engine, guild_id: int, role_id: int) -> JoinRole:
    with get_session(engine) as session:
        session.add(JoinRoleRow(guild_id=guild_id, role_id=role_id))
    return JoinRole(role_id=role_id)


@_persistence
def delete_join_role(engine: Engine, role_id: int) -> int:
    with get_session(engine) as session:
        result = session.execute(delete(JoinRoleRow).where(JoinRoleRow.role_id == role_id))
        return result.rowcount or 0


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------
@_persistence
def get_folders(engine: Engine, guild_id: int) -> list[FolderSummary]:
    with Session(engine) as session:
        rows = session.scalars(
            select(FolderRow)
            .where(FolderRow.guild_id == guild_id)
            .order_by(FolderRow.id)
        ).all()
        return [FolderSummary(id=r.id, label=r.label) for r in rows]


@_persistence
def get_folder_contents(engine: Engine, folder_id: int) -> list[RoleBinding]:
    with Session(engine) as session:
        rows = session.scalars(
            select(ReactRoleRow)
            .where(ReactRoleRow.folder_id == folder_id)
            .order_by(ReactRoleRow.id)
        ).all()
        return [_binding(r) for r in rows]


@_persistence
def create_folder(engine: Engine, guild_id: int, label: str) -> FolderSummary:
    with get_session(engine) as session:
        row = FolderRow(guild_id=guild_id, label=label)
        session.add(row)
        session.flush()
        return FolderSummary(id=row.id, label=row.label)


@_persistence
def delete_folder(engine: Engine, folder_id: int) -> int:
    """Delete a folder, its react roles, and their message placements.

    Returns the number of react roles removed with the folder.
    """
    with get_session(engine) as session:
        folder = session.get(FolderRow, folder_id)
        if folder is None:
            return 0
        role_ids = list(session.scalars(
            select(ReactRoleRow.role_id).where(ReactRoleRow.folder_id == folder_id)
        ).all())
        if role_ids:
            session.execute(
                delete(ReactMessageRow).where(
                    ReactMessageRow.guild_id == folder.guild_id,
                    ReactMessageRow.role_id.in_(role_ids),
                )
            )
            session.execute(delete(ReactRoleRow).where(ReactRoleRow.folder_id == folder_id))
        session.delete(folder)
        logger.info(
            "Deleted folder %d (%r) with %d react roles", folder_id, folder.label, len(role_ids),
        )
        return len(role_ids)
