"""
rolebot.engine.join_roles — Join Roles & Handoff
=================================================

New members receive the guild's join roles.  Once they pick a reaction
role, the join roles are taken away again after a short delay, but only
if, right before that grant, the member's highest role was the guild's
first join role.  That check is a proxy for "still holds provisional roles
only" and assumes every join role sits below every reaction role.

The delayed removal has no cancellation token: once scheduled it runs, even
if the member un-reacts and re-reacts in the meantime.  Overlapping
removals for the same member are not coalesced.
"""

from __future__ import annotations

import logging

from rolebot.constants import HANDOFF_DELAY_SECONDS
from rolebot.engine.cache import BindingCache
from rolebot.engine.errors import RoleBotError
from rolebot.engine.remote import RoleState
from rolebot.engine.scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


class JoinRoleReconciler:
    def __init__(
        self,
        cache: BindingCache,
        roles: RoleState,
        scheduler: Scheduler,
        handoff_delay: float = HANDOFF_DELAY_SECONDS,
    ) -> None:
        self._cache = cache
        self._roles = roles
        self._scheduler = scheduler
        self._handoff_delay = handoff_delay

    async def on_member_join(self, guild_id: int, user_id: int, *, is_bot: bool = False) -> int:
        """Grant every join role.  Returns how many grants succeeded."""
        if is_bot:
            return 0
        granted = 0
        for join_role in self._cache.join_roles(guild_id):
            try:
                await self._roles.add_role(guild_id, user_id, join_role.role_id)
                granted += 1
            except RoleBotError as exc:
                logger.warning(
                    "Could not grant join role %d to user %d in guild %d: %s",
                    join_role.role_id, user_id, guild_id, exc,
                )
        if granted:
            logger.info("Granted %d join roles to user %d in guild %d", granted, user_id, guild_id)
        return granted

    async def is_handoff_candidate(self, guild_id: int, user_id: int) -> bool:
        """True if the member's live top role is the guild's first join role."""
        anchor = self._cache.first_join_role(guild_id)
        if anchor is None:
            return False
        try:
            highest = await self._roles.get_highest_role(guild_id, user_id)
        except RoleBotError as exc:
            logger.warning(
                "Could not fetch highest role of user %d in guild %d: %s",
                user_id, guild_id, exc,
            )
            return False
        return highest == anchor.role_id

    def on_first_grant(self, guild_id: int, user_id: int) -> ScheduledTask:
        """Schedule removal of all join roles after the handoff delay."""
        logger.debug(
            "Scheduling join-role removal for user %d in guild %d in %.1fs",
            user_id, guild_id, self._handoff_delay,
        )
        return self._scheduler.schedule(
            self._handoff_delay,
            lambda: self._remove_join_roles(guild_id, user_id),
            name=f"join-handoff-{guild_id}-{user_id}",
        )

    async def _remove_join_roles(self, guild_id: int, user_id: int) -> None:
        removed = 0
        for join_role in self._cache.join_roles(guild_id):
            try:
                if await self._roles.remove_role(guild_id, user_id, join_role.role_id):
                    removed += 1
            except RoleBotError as exc:
                logger.warning(
                    "Could not remove join role %d from user %d in guild %d: %s",
                    join_role.role_id, user_id, guild_id, exc,
                )
        logger.info("Handoff removed %d join roles from user %d in guild %d", removed, user_id, guild_id)
