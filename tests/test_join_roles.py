"""
tests/test_join_roles.py — Join Role Grants & Handoff
======================================================
"""

from __future__ import annotations

import asyncio

import pytest

from rolebot.engine.cache import BindingCache
from rolebot.engine.errors import PermissionDenied, TransientNetworkError
from rolebot.engine.join_roles import JoinRoleReconciler
from rolebot.engine.records import JoinRole
from rolebot.engine.scheduler import Scheduler

GUILD = 100
USER = 7
NEWCOMER = 10   # first join role, lowest
UNVERIFIED = 11
REACT_ROLE = 20
MODERATOR = 90


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


@pytest.fixture
def cache() -> BindingCache:
    cache = BindingCache()
    cache.add_join_role(GUILD, JoinRole(NEWCOMER))
    cache.add_join_role(GUILD, JoinRole(UNVERIFIED))
    return cache


@pytest.fixture
def reconciler(cache, role_state) -> JoinRoleReconciler:
    role_state.positions.update({NEWCOMER: 2, UNVERIFIED: 1, REACT_ROLE: 5, MODERATOR: 9})
    return JoinRoleReconciler(cache, role_state, Scheduler(), handoff_delay=0.01)


class TestMemberJoin:
    def test_grants_every_join_role(self, reconciler, role_state):
        assert run_async(reconciler.on_member_join(GUILD, USER)) == 2
        assert role_state.held(GUILD, USER) == {NEWCOMER, UNVERIFIED}

    def test_bots_are_skipped(self, reconciler, role_state):
        assert run_async(reconciler.on_member_join(GUILD, USER, is_bot=True)) == 0
        assert role_state.calls == []

    def test_no_join_roles(self, role_state):
        reconciler = JoinRoleReconciler(BindingCache(), role_state, Scheduler())
        assert run_async(reconciler.on_member_join(GUILD, USER)) == 0

    def test_one_failure_does_not_stop_the_rest(self, reconciler, role_state):
        del role_state.positions[NEWCOMER]
        assert run_async(reconciler.on_member_join(GUILD, USER)) == 1
        assert role_state.held(GUILD, USER) == {UNVERIFIED}


class TestHandoffCandidate:
    def test_top_role_is_first_join_role(self, reconciler, role_state):
        role_state.held(GUILD, USER).update({NEWCOMER, UNVERIFIED})
        assert run_async(reconciler.is_handoff_candidate(GUILD, USER))

    def test_member_with_higher_role(self, reconciler, role_state):
        role_state.held(GUILD, USER).update({NEWCOMER, MODERATOR})
        assert not run_async(reconciler.is_handoff_candidate(GUILD, USER))

    def test_member_without_roles(self, reconciler):
        assert not run_async(reconciler.is_handoff_candidate(GUILD, USER))

    def test_guild_without_join_roles(self, role_state):
        reconciler = JoinRoleReconciler(BindingCache(), role_state, Scheduler())
        assert not run_async(reconciler.is_handoff_candidate(GUILD, USER))

    def test_fetch_failure_means_no_handoff(self, reconciler, role_state):
        role_state.held(GUILD, USER).add(NEWCOMER)
        role_state.fail["get_highest_role"] = TransientNetworkError("timeout")
        assert not run_async(reconciler.is_handoff_candidate(GUILD, USER))


class TestHandoff:
    def test_removes_join_roles_after_delay(self, reconciler, role_state):
        role_state.held(GUILD, USER).update({NEWCOMER, UNVERIFIED, REACT_ROLE})

        async def scenario():
            handle = reconciler.on_first_grant(GUILD, USER)
            assert role_state.held(GUILD, USER) == {NEWCOMER, UNVERIFIED, REACT_ROLE}
            await handle.wait()

        run_async(scenario())
        assert role_state.held(GUILD, USER) == {REACT_ROLE}

    def test_reads_join_roles_when_it_fires(self, reconciler, cache, role_state):
        role_state.held(GUILD, USER).update({NEWCOMER, UNVERIFIED, REACT_ROLE})

        async def scenario():
            handle = reconciler.on_first_grant(GUILD, USER)
            cache.remove_join_role(GUILD, UNVERIFIED)
            await handle.wait()

        run_async(scenario())
        assert role_state.held(GUILD, USER) == {UNVERIFIED, REACT_ROLE}

    def test_cannot_be_cancelled(self, reconciler, role_state):
        role_state.held(GUILD, USER).update({NEWCOMER, REACT_ROLE})

        async def scenario():
            handle = reconciler.on_first_grant(GUILD, USER)
            assert handle.cancel() is False
            await handle.wait()

        run_async(scenario())
        assert role_state.held(GUILD, USER) == {REACT_ROLE}

    def test_removal_failure_is_contained(self, reconciler, role_state, caplog):
        role_state.held(GUILD, USER).update({NEWCOMER, REACT_ROLE})
        role_state.fail["remove_role"] = PermissionDenied("hierarchy")

        async def scenario():
            await reconciler.on_first_grant(GUILD, USER).wait()

        run_async(scenario())
        assert "Could not remove join role" in caplog.text
        assert NEWCOMER in role_state.held(GUILD, USER)
