"""
rolebot.engine.pipeline — Reaction Processing Pipeline
=======================================================

The consumer the router's per-guild lanes call for every settled event:

1. For additions, sample the handoff precondition (live highest role).
2. Apply the mutation.
3. If a role was actually granted and the precondition held, hand off
   the member's join roles.

This is the error boundary of the reaction path: nothing raised in here
may reach the lane.
"""

from __future__ import annotations

import logging

from rolebot.engine.events import ReactionEvent
from rolebot.engine.join_roles import JoinRoleReconciler
from rolebot.engine.mutator import MutationOutcome, MutationResult, RoleMutator

logger = logging.getLogger(__name__)


class ReactionPipeline:
    def __init__(self, mutator: RoleMutator, reconciler: JoinRoleReconciler) -> None:
        self._mutator = mutator
        self._reconciler = reconciler

    async def process(self, event: ReactionEvent) -> MutationResult | None:
        try:
            handoff = False
            if event.is_add:
                handoff = await self._reconciler.is_handoff_candidate(event.guild_id, event.user_id)

            result = await self._mutator.apply(event)

            if handoff and result.outcome is MutationOutcome.ADDED:
                self._reconciler.on_first_grant(event.guild_id, event.user_id)
            return result
        except Exception:
            logger.exception(
                "Unhandled error processing reaction %s by user %d on message %d in guild %d",
                event.direction, event.user_id, event.message_id, event.guild_id,
            )
            return None
