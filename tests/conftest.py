"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from rolebot.database.models import Base
from rolebot.engine.errors import NotFoundError


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all RoleBot tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).  Foreign keys
    are switched on so ON DELETE CASCADE behaves as on PostgreSQL.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# In-memory platform fakes
# ---------------------------------------------------------------------------
class FakeRoleState:
    """Member roles held in a dict, with role positions for "highest role".

    ``fail`` maps a method name to an exception raised on every call.
    """

    def __init__(self, positions: dict[int, int] | None = None) -> None:
        self.positions: dict[int, int] = dict(positions or {})
        self.members: dict[tuple[int, int], set[int]] = {}
        self.calls: list[tuple] = []
        self.retracted: list[tuple[int, int, str, int]] = []
        self.fail: dict[str, Exception] = {}

    def held(self, guild_id: int, user_id: int) -> set[int]:
        return self.members.setdefault((guild_id, user_id), set())

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail:
            raise self.fail[name]

    async def add_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        self.calls.append(("add", guild_id, user_id, role_id))
        self._maybe_fail("add_role")
        if role_id not in self.positions:
            raise NotFoundError("role", role_id)
        roles = self.held(guild_id, user_id)
        if role_id in roles:
            return False
        roles.add(role_id)
        return True

    async def remove_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        self.calls.append(("remove", guild_id, user_id, role_id))
        self._maybe_fail("remove_role")
        roles = self.held(guild_id, user_id)
        if role_id not in roles:
            return False
        roles.discard(role_id)
        return True

    async def get_highest_role(self, guild_id: int, user_id: int) -> int | None:
        self._maybe_fail("get_highest_role")
        roles = self.held(guild_id, user_id)
        if not roles:
            return None
        return max(roles, key=lambda r: self.positions.get(r, 0))

    async def remove_reaction(self, channel_id: int, message_id: int, emoji: str, user_id: int) -> None:
        self._maybe_fail("remove_reaction")
        self.retracted.append((channel_id, message_id, emoji, user_id))


class FakeGateway:
    def __init__(self, bots: set[int] | None = None, missing: set[int] | None = None) -> None:
        self.bots = set(bots or ())
        self.missing = set(missing or ())
        self.message_lookups: list[int] = []
        self.fail: dict[str, Exception] = {}

    async def is_bot(self, user_id: int) -> bool:
        if "is_bot" in self.fail:
            raise self.fail["is_bot"]
        return user_id in self.bots

    async def message_exists(self, channel_id: int, message_id: int) -> bool:
        self.message_lookups.append(message_id)
        if "message_exists" in self.fail:
            raise self.fail["message_exists"]
        return message_id not in self.missing


@pytest.fixture
def role_state() -> FakeRoleState:
    return FakeRoleState()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
