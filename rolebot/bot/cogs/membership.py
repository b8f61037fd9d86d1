"""
rolebot.bot.cogs.membership — Member, Role & Guild Lifecycle
=============================================================

* GUILD_MEMBER_ADD   → grant join roles.
* GUILD_ROLE_DELETE  → cascade-clean every binding of the deleted role.
* GUILD_ROLE_UPDATE  → keep stored role names in step with renames.
* GUILD_CREATE       → load the new guild's configuration into the cache.
* GUILD_DELETE       → purge the guild from the cache.

Requires the GUILD_MEMBERS privileged intent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

if TYPE_CHECKING:
    from rolebot.bot.core import RoleBot

logger = logging.getLogger(__name__)


class Membership(commands.Cog, name="Membership"):
    """Keeps join roles and the binding cache in step with the guild."""

    def __init__(self, bot: RoleBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        try:
            await self.bot.ctx.reconciler.on_member_join(
                member.guild.id, member.id, is_bot=member.bot,
            )
        except Exception:
            logger.exception(
                "Error granting join roles to %s in guild %s", member.id, member.guild.id,
            )

    @commands.Cog.listener()
    async def on_guild_role_delete(self, role: discord.Role) -> None:
        try:
            await self.bot.ctx.registry.handle_role_deleted(role.guild.id, role.id)
        except Exception:
            logger.exception(
                "Error cleaning up deleted role %s in guild %s", role.id, role.guild.id,
            )

    @commands.Cog.listener()
    async def on_guild_role_update(self, before: discord.Role, after: discord.Role) -> None:
        if before.name == after.name:
            return
        try:
            await self.bot.ctx.registry.rename_role(after.guild.id, after.id, after.name)
        except Exception:
            logger.exception(
                "Error renaming role %s in guild %s", after.id, after.guild.id,
            )

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info(
            "Joined guild %s (%s) with %s members", guild.id, guild.name, guild.member_count,
        )
        try:
            await self.bot.ctx.cache.load_guild(self.bot.ctx.engine, guild.id)
        except Exception:
            logger.exception("Error loading configuration for guild %s", guild.id)

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        logger.info("Removed from guild %s (%s)", guild.id, guild.name)
        self.bot.ctx.registry.purge_guild(guild.id)


async def setup(bot: RoleBot) -> None:
    await bot.add_cog(Membership(bot))
