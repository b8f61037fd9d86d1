"""
tests/test_reaction_store.py — Persistence Functions
=====================================================

Runs every store function against in-memory SQLite.
"""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine, select

from rolebot.database.models import ReactMessageRow, ReactRoleRow
from rolebot.engine.errors import PersistenceFailure
from rolebot.engine.records import RoleBinding
from rolebot.services import reaction_store as store

GUILD = 100
OTHER_GUILD = 200


def _binding(role_id: int, emoji: str) -> RoleBinding:
    return RoleBinding(role_id=role_id, role_name=f"role-{role_id}", emoji_id=emoji)


class TestFolders:
    def test_create_and_list_in_creation_order(self, db_engine):
        a = store.create_folder(db_engine, GUILD, "Colours")
        b = store.create_folder(db_engine, GUILD, "Pronouns")
        store.create_folder(db_engine, OTHER_GUILD, "Elsewhere")

        folders = store.get_folders(db_engine, GUILD)
        assert [f.id for f in folders] == [a.id, b.id]
        assert [f.label for f in folders] == ["Colours", "Pronouns"]

    def test_folder_contents(self, db_engine):
        folder = store.create_folder(db_engine, GUILD, "Colours")
        store.add_react_role(db_engine, GUILD, folder.id, _binding(1, "🔴"))
        store.add_react_role(db_engine, GUILD, folder.id, _binding(2, "123456"))

        contents = store.get_folder_contents(db_engine, folder.id)
        assert contents == [_binding(1, "🔴"), _binding(2, "123456")]

    def test_delete_folder_cascades_roles_and_placements(self, db_engine, db_session):
        doomed = store.create_folder(db_engine, GUILD, "Doomed")
        kept = store.create_folder(db_engine, GUILD, "Kept")
        store.add_react_role(db_engine, GUILD, doomed.id, _binding(1, "a"))
        store.add_react_role(db_engine, GUILD, kept.id, _binding(2, "b"))
        store.add_react_messages(db_engine, GUILD, 10, 500, [_binding(1, "a"), _binding(2, "b")])

        assert store.delete_folder(db_engine, doomed.id) == 1

        assert [f.id for f in store.get_folders(db_engine, GUILD)] == [kept.id]
        role_ids = db_session.scalars(select(ReactRoleRow.role_id)).all()
        assert role_ids == [2]
        placements = store.get_react_messages_by_message(db_engine, 500)
        assert [(p.emoji_id, p.role_id) for p in placements] == [("b", 2)]

    def test_delete_missing_folder(self, db_engine):
        assert store.delete_folder(db_engine, 999) == 0


class TestReactRoles:
    def test_role_unique_per_guild(self, db_engine):
        store.add_react_role(db_engine, GUILD, None, _binding(1, "a"))
        with pytest.raises(PersistenceFailure):
            store.add_react_role(db_engine, GUILD, None, _binding(1, "b"))
        # Same role id in another guild is a different row.
        store.add_react_role(db_engine, OTHER_GUILD, None, _binding(1, "a"))

    def test_bindings_by_guild(self, db_engine):
        store.add_react_role(db_engine, GUILD, None, _binding(1, "a"))
        store.add_react_role(db_engine, OTHER_GUILD, None, _binding(2, "b"))
        assert store.get_role_bindings_by_guild(db_engine, GUILD) == [_binding(1, "a")]

    def test_update_role_name(self, db_engine):
        store.add_react_role(db_engine, GUILD, None, _binding(1, "a"))
        assert store.update_role_name(db_engine, 1, "Renamed") == 1
        assert store.get_role_bindings_by_guild(db_engine, GUILD)[0].role_name == "Renamed"

    def test_delete_by_role_and_guild(self, db_engine):
        store.add_react_role(db_engine, GUILD, None, _binding(1, "a"))
        store.add_react_role(db_engine, GUILD, None, _binding(2, "b"))
        store.add_react_role(db_engine, OTHER_GUILD, None, _binding(3, "c"))

        assert store.delete_react_role_by_role_id(db_engine, 1) == 1
        assert store.delete_react_role_by_role_id(db_engine, 1) == 0
        assert store.delete_all_react_roles_by_guild(db_engine, GUILD) == 1
        assert store.get_role_bindings_by_guild(db_engine, OTHER_GUILD) == [_binding(3, "c")]


class TestReactMessages:
    def test_add_and_read_back(self, db_engine):
        rows = store.add_react_messages(
            db_engine, GUILD, 10, 500, [_binding(1, "a"), _binding(2, "b")],
        )
        assert [(r.message_id, r.emoji_id, r.role_id) for r in rows] == [
            (500, "a", 1), (500, "b", 2),
        ]
        assert store.get_react_messages_by_message(db_engine, 500) == rows
        assert store.get_react_messages(db_engine) == rows
        assert store.get_react_messages_by_message(db_engine, 501) == []

    def test_emoji_unique_per_message(self, db_engine):
        store.add_react_messages(db_engine, GUILD, 10, 500, [_binding(1, "a")])
        with pytest.raises(PersistenceFailure):
            store.add_react_messages(db_engine, GUILD, 10, 500, [_binding(2, "a")])

    def test_delete_by_role_and_guild(self, db_engine, db_session):
        store.add_react_messages(db_engine, GUILD, 10, 500, [_binding(1, "a"), _binding(2, "b")])
        store.add_react_messages(db_engine, OTHER_GUILD, 11, 600, [_binding(3, "c")])

        assert store.delete_react_message_by_role_id(db_engine, 1) == 1
        assert store.delete_react_messages_by_guild(db_engine, GUILD) == 1
        remaining = db_session.scalars(select(ReactMessageRow.message_id)).all()
        assert remaining == [600]


class TestJoinRoles:
    def test_ordered_by_creation(self, db_engine):
        store.add_join_role(db_engine, GUILD, 30)
        store.add_join_role(db_engine, GUILD, 10)
        store.add_join_role(db_engine, OTHER_GUILD, 99)
        assert [r.role_id for r in store.get_join_roles(db_engine, GUILD)] == [30, 10]

    def test_duplicate_rejected(self, db_engine):
        store.add_join_role(db_engine, GUILD, 30)
        with pytest.raises(PersistenceFailure):
            store.add_join_role(db_engine, GUILD, 30)

    def test_delete(self, db_engine):
        store.add_join_role(db_engine, GUILD, 30)
        assert store.delete_join_role(db_engine, 30) == 1
        assert store.delete_join_role(db_engine, 30) == 0
        assert store.get_join_roles(db_engine, GUILD) == []


class TestFailureTranslation:
    def test_sqlalchemy_error_becomes_persistence_failure(self):
        # No tables: every query fails with "no such table".
        engine = create_engine("sqlite://")
        with pytest.raises(PersistenceFailure, match="get_folders"):
            store.get_folders(engine, GUILD)
