"""
tests/test_pipeline.py — Reaction Pipeline
===========================================

Join-then-react handoff, the precondition sampled before the grant, and
the pipeline as the error boundary of the reaction path.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rolebot.engine.cache import BindingCache
from rolebot.engine.events import Direction, ReactionEvent
from rolebot.engine.join_roles import JoinRoleReconciler
from rolebot.engine.mutator import MutationOutcome, RoleMutator
from rolebot.engine.pipeline import ReactionPipeline
from rolebot.engine.records import JoinRole, ReactMessageRow
from rolebot.engine.scheduler import Scheduler

GUILD = 100
MESSAGE = 500
USER = 7
JOIN_ROLE = 10
REACT_ROLE = 20
OTHER_REACT_ROLE = 21
MODERATOR = 90


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


def _event(direction: Direction, emoji: str = "a") -> ReactionEvent:
    return ReactionEvent(
        guild_id=GUILD, channel_id=10, message_id=MESSAGE,
        user_id=USER, emoji=emoji, direction=direction,
    )


async def _until_idle(scheduler: Scheduler) -> None:
    while scheduler.pending:
        await asyncio.sleep(0.005)


@pytest.fixture
def scheduler() -> Scheduler:
    return Scheduler()


@pytest.fixture
def pipeline(role_state, scheduler) -> ReactionPipeline:
    role_state.positions.update({JOIN_ROLE: 1, REACT_ROLE: 5, OTHER_REACT_ROLE: 6, MODERATOR: 9})
    cache = BindingCache()
    cache.add_join_role(GUILD, JoinRole(JOIN_ROLE))
    cache.add_placements([
        ReactMessageRow(GUILD, 10, MESSAGE, "a", REACT_ROLE),
        ReactMessageRow(GUILD, 10, MESSAGE, "b", OTHER_REACT_ROLE),
    ])
    reconciler = JoinRoleReconciler(cache, role_state, scheduler, handoff_delay=0.01)
    return ReactionPipeline(RoleMutator(cache, role_state), reconciler)


class TestHandoff:
    def test_join_then_react_removes_join_role(self, pipeline, role_state, scheduler):
        role_state.held(GUILD, USER).add(JOIN_ROLE)

        async def scenario():
            result = await pipeline.process(_event(Direction.ADD))
            assert result.outcome is MutationOutcome.ADDED
            assert role_state.held(GUILD, USER) == {JOIN_ROLE, REACT_ROLE}
            await _until_idle(scheduler)

        run_async(scenario())
        assert role_state.held(GUILD, USER) == {REACT_ROLE}

    def test_member_with_higher_role_keeps_join_role(self, pipeline, role_state, scheduler):
        role_state.held(GUILD, USER).update({JOIN_ROLE, MODERATOR})

        async def scenario():
            await pipeline.process(_event(Direction.ADD))
            assert scheduler.pending == 0

        run_async(scenario())
        assert role_state.held(GUILD, USER) == {JOIN_ROLE, MODERATOR, REACT_ROLE}

    def test_second_reaction_role_does_not_hand_off(self, pipeline, role_state, scheduler):
        role_state.held(GUILD, USER).add(JOIN_ROLE)

        async def scenario():
            await pipeline.process(_event(Direction.ADD, "a"))
            await _until_idle(scheduler)
            role_state.held(GUILD, USER).add(JOIN_ROLE)  # re-granted by hand
            await pipeline.process(_event(Direction.ADD, "b"))
            assert scheduler.pending == 0

        run_async(scenario())
        assert role_state.held(GUILD, USER) == {JOIN_ROLE, REACT_ROLE, OTHER_REACT_ROLE}

    def test_noop_grant_does_not_hand_off(self, pipeline, role_state, scheduler):
        # Already holds the reaction role; top role is still the join role
        # only because positions put it there.
        role_state.positions[REACT_ROLE] = 0
        role_state.held(GUILD, USER).update({JOIN_ROLE, REACT_ROLE})

        async def scenario():
            result = await pipeline.process(_event(Direction.ADD))
            assert result.outcome is MutationOutcome.NOOP
            assert scheduler.pending == 0

        run_async(scenario())
        assert JOIN_ROLE in role_state.held(GUILD, USER)

    def test_remove_never_samples_highest_role(self, pipeline, role_state, scheduler):
        role_state.held(GUILD, USER).update({JOIN_ROLE, REACT_ROLE})
        role_state.fail["get_highest_role"] = AssertionError("not expected")

        result = run_async(pipeline.process(_event(Direction.REMOVE)))
        assert result.outcome is MutationOutcome.REMOVED


class TestErrorBoundary:
    def test_unexpected_error_is_swallowed(self, caplog):
        mutator = MagicMock()
        mutator.apply = AsyncMock(side_effect=RuntimeError("boom"))
        reconciler = MagicMock()
        reconciler.is_handoff_candidate = AsyncMock(return_value=False)
        pipeline = ReactionPipeline(mutator, reconciler)

        assert run_async(pipeline.process(_event(Direction.ADD))) is None
        assert "Unhandled error processing reaction" in caplog.text
