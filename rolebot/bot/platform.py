"""
rolebot.bot.platform — discord.py Adapters
===========================================

Implements the engine's :class:`~rolebot.engine.remote.RoleState` and
:class:`~rolebot.engine.remote.Gateway` protocols on top of a running bot,
translating discord.py exceptions into the RoleBot error taxonomy:

    discord.NotFound        → NotFoundError
    discord.Forbidden       → PermissionDenied
    HTTP 429                → RateLimited
    other HTTPException,
    aiohttp / timeout       → TransientNetworkError
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import aiohttp
import discord

from rolebot.engine.errors import (
    NotFoundError,
    PermissionDenied,
    RateLimited,
    TransientNetworkError,
)

if TYPE_CHECKING:
    from discord.ext import commands

logger = logging.getLogger(__name__)

ROLE_REASON = "RoleBot: reaction role"


@contextmanager
def translate_errors(kind: str, ident: object) -> Iterator[None]:
    """Re-raise discord.py / transport failures as RoleBot errors."""
    try:
        yield
    except discord.NotFound as exc:
        raise NotFoundError(kind, ident, exc.text) from exc
    except discord.Forbidden as exc:
        raise PermissionDenied(f"{kind} {ident}: {exc.text or 'forbidden'}") from exc
    except discord.HTTPException as exc:
        if exc.status == 429:
            raise RateLimited(f"{kind} {ident}: rate limited") from exc
        raise TransientNetworkError(f"{kind} {ident}: HTTP {exc.status} {exc.text}") from exc
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise TransientNetworkError(f"{kind} {ident}: {exc!r}") from exc


def reaction_emoji(key: str) -> discord.PartialEmoji | str:
    """Rebuild something ``remove_reaction`` accepts from a binding key."""
    if key.isdigit():
        # The API only needs the id; the name part is ignored.
        return discord.PartialEmoji(name="_", id=int(key))
    return key


class DiscordRoleState:
    """Member role state, read and written through the Discord API."""

    def __init__(self, bot: commands.Bot) -> None:
        self._bot = bot

    def _guild(self, guild_id: int) -> discord.Guild:
        guild = self._bot.get_guild(guild_id)
        if guild is None:
            raise NotFoundError("guild", guild_id)
        return guild

    def _role(self, guild: discord.Guild, role_id: int) -> discord.Role:
        role = guild.get_role(role_id)
        if role is None:
            raise NotFoundError("role", role_id, f"guild {guild.id}")
        return role

    async def _member(self, guild: discord.Guild, user_id: int, *, fresh: bool = False) -> discord.Member:
        member = None if fresh else guild.get_member(user_id)
        if member is None:
            with translate_errors("member", user_id):
                member = await guild.fetch_member(user_id)
        return member

    async def add_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        guild = self._guild(guild_id)
        role = self._role(guild, role_id)
        member = await self._member(guild, user_id)
        if any(r.id == role_id for r in member.roles):
            return False
        with translate_errors("role", role_id):
            await member.add_roles(role, reason=ROLE_REASON)
        return True

    async def remove_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        guild = self._guild(guild_id)
        role = self._role(guild, role_id)
        member = await self._member(guild, user_id)
        if not any(r.id == role_id for r in member.roles):
            return False
        with translate_errors("role", role_id):
            await member.remove_roles(role, reason=ROLE_REASON)
        return True

    async def get_highest_role(self, guild_id: int, user_id: int) -> int | None:
        guild = self._guild(guild_id)
        member = await self._member(guild, user_id, fresh=True)
        top = member.top_role
        if top is None or top.is_default():
            return None
        return top.id

    async def remove_reaction(
        self,
        channel_id: int,
        message_id: int,
        emoji: str,
        user_id: int,
    ) -> None:
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            with translate_errors("channel", channel_id):
                channel = await self._bot.fetch_channel(channel_id)
        if not isinstance(channel, (discord.TextChannel, discord.Thread, discord.VoiceChannel)):
            raise NotFoundError("channel", channel_id, "not a messageable guild channel")
        message = channel.get_partial_message(message_id)
        with translate_errors("message", message_id):
            await message.remove_reaction(reaction_emoji(emoji), discord.Object(id=user_id))


class DiscordGateway:
    """Gateway-side lookups with REST fallback for uncached entities."""

    def __init__(self, bot: commands.Bot) -> None:
        self._bot = bot

    async def is_bot(self, user_id: int) -> bool:
        user = self._bot.get_user(user_id)
        if user is None:
            with translate_errors("user", user_id):
                user = await self._bot.fetch_user(user_id)
        return user.bot

    async def message_exists(self, channel_id: int, message_id: int) -> bool:
        try:
            with translate_errors("channel", channel_id):
                channel = self._bot.get_channel(channel_id) or await self._bot.fetch_channel(channel_id)
            if not isinstance(channel, discord.abc.Messageable):
                return False
            with translate_errors("message", message_id):
                await channel.fetch_message(message_id)
        except NotFoundError:
            return False
        return True

    async def channel_reachable(self, channel_id: int) -> bool:
        """Used at boot to prune react messages whose channel is gone."""
        if self._bot.get_channel(channel_id) is not None:
            return True
        try:
            with translate_errors("channel", channel_id):
                await self._bot.fetch_channel(channel_id)
        except (NotFoundError, PermissionDenied) as exc:
            logger.warning("Channel %d is unreachable: %s", channel_id, exc)
            return False
        return True
