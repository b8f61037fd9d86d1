"""
rolebot.bot.cogs.reactions — Reaction Role Gateway Listener
============================================================

Listens for raw reaction add/remove events (raw so that reactions on
uncached messages are still seen), normalizes them into
:class:`~rolebot.engine.events.RawReaction` and hands them to the router.
The router decides relevance and schedules the settled mutation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from rolebot.engine.events import Direction, RawReaction

if TYPE_CHECKING:
    from rolebot.bot.core import RoleBot

logger = logging.getLogger(__name__)


def to_raw_reaction(payload: discord.RawReactionActionEvent, direction: Direction) -> RawReaction:
    """Strip a discord.py payload down to what the router needs."""
    member = payload.member
    return RawReaction(
        direction=direction,
        guild_id=payload.guild_id,
        channel_id=payload.channel_id,
        message_id=payload.message_id,
        user_id=payload.user_id,
        emoji_id=payload.emoji.id,
        emoji_name=payload.emoji.name,
        is_bot=member.bot if member is not None else None,
    )


class Reactions(commands.Cog, name="Reactions"):
    """Routes reaction events into the reaction-role engine."""

    def __init__(self, bot: RoleBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        self._submit(payload, Direction.ADD)

    @commands.Cog.listener()
    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        self._submit(payload, Direction.REMOVE)

    def _submit(self, payload: discord.RawReactionActionEvent, direction: Direction) -> None:
        try:
            self.bot.ctx.router.submit(to_raw_reaction(payload, direction))
        except Exception:
            logger.exception(
                "Error routing reaction %s from user %s on message %s in guild %s",
                direction, payload.user_id, payload.message_id, payload.guild_id,
            )


async def setup(bot: RoleBot) -> None:
    await bot.add_cog(Reactions(bot))
