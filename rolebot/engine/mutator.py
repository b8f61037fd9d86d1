"""
rolebot.engine.mutator — Reaction → Role Mutation
==================================================

Turns one canonical :class:`~rolebot.engine.events.ReactionEvent` into at
most one call against the remote role state.

Outcomes:
    ADDED / REMOVED  — the member's roles changed.
    NOOP             — nothing to do (role already held / not held, or an
                       unbound emoji was removed).  Counts as success.
    RETRACTED        — an unbound emoji was added; the reaction was taken
                       back so the user isn't left thinking it did something.
    FAILED           — the remote call failed; the error is attached and
                       logged, never raised.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from rolebot.engine.cache import BindingCache
from rolebot.engine.errors import NotFoundError, RoleBotError
from rolebot.engine.events import ReactionEvent
from rolebot.engine.remote import RoleState

logger = logging.getLogger(__name__)


class MutationOutcome(enum.StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    NOOP = "noop"
    RETRACTED = "retracted"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class MutationResult:
    outcome: MutationOutcome
    role_id: int | None = None
    error: RoleBotError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not MutationOutcome.FAILED


class RoleMutator:
    """Applies reaction events to member roles, idempotently."""

    def __init__(self, cache: BindingCache, roles: RoleState) -> None:
        self._cache = cache
        self._roles = roles

    async def apply(self, event: ReactionEvent) -> MutationResult:
        # Read at apply time: the settle delay may have let a folder or
        # role deletion through since the event was routed.
        binding = self._cache.get_binding(event.guild_id, event.message_id, event.emoji)

        if binding is None:
            if not event.is_add:
                return MutationResult(MutationOutcome.NOOP)
            return await self._retract(event)

        try:
            if event.is_add:
                changed = await self._roles.add_role(event.guild_id, event.user_id, binding.role_id)
                outcome = MutationOutcome.ADDED if changed else MutationOutcome.NOOP
            else:
                changed = await self._roles.remove_role(event.guild_id, event.user_id, binding.role_id)
                outcome = MutationOutcome.REMOVED if changed else MutationOutcome.NOOP
        except NotFoundError as exc:
            logger.warning(
                "Dropping %s of role %d for user %d on message %d in guild %d: %s",
                event.direction, binding.role_id, event.user_id,
                event.message_id, event.guild_id, exc,
            )
            return MutationResult(MutationOutcome.FAILED, binding.role_id, exc)
        except RoleBotError as exc:
            logger.error(
                "Failed to %s role %d (%s) for user %d on message %d in guild %d: %s",
                event.direction, binding.role_id, binding.role_name, event.user_id,
                event.message_id, event.guild_id, exc,
            )
            return MutationResult(MutationOutcome.FAILED, binding.role_id, exc)

        logger.debug(
            "Reaction %s: role %d → %s for user %d in guild %d",
            event.direction, binding.role_id, outcome, event.user_id, event.guild_id,
        )
        return MutationResult(outcome, binding.role_id)

    async def _retract(self, event: ReactionEvent) -> MutationResult:
        try:
            await self._roles.remove_reaction(
                event.channel_id, event.message_id, event.emoji, event.user_id,
            )
        except RoleBotError as exc:
            logger.warning(
                "Could not retract unbound reaction %r by user %d on message %d in guild %d: %s",
                event.emoji, event.user_id, event.message_id, event.guild_id, exc,
            )
            return MutationResult(MutationOutcome.FAILED, error=exc)
        logger.debug(
            "Retracted unbound reaction %r by user %d on message %d",
            event.emoji, event.user_id, event.message_id,
        )
        return MutationResult(MutationOutcome.RETRACTED)
