"""
rolebot.bot.cogs.folders — Operator Slash Commands
===================================================

Slash commands for members with *Manage Roles*:

- /folder-create, /folder-list, /folder-remove
- /folder-add-role, /folder-remove-role, /folder-post
- /join-role-add, /join-role-remove, /join-role-list
- /react-nuke (with a confirmation button)

Folders are addressed by their position in /folder-list, not by id.  All
replies are ephemeral and delete themselves after ``feedback_ttl_seconds``;
failures (including store failures, which leave the cache untouched) are
reported the same way.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from rolebot.bot.platform import reaction_emoji
from rolebot.constants import emoji_key
from rolebot.engine.errors import (
    DuplicateBindingError,
    NotFoundError,
    PersistenceFailure,
    RoleBotError,
    StaleCacheConflict,
)
from rolebot.engine.records import Folder

if TYPE_CHECKING:
    from rolebot.bot.core import RoleBot

logger = logging.getLogger(__name__)


def describe_error(error: Exception) -> str:
    """User-facing text for a failed operator command."""
    if isinstance(error, PersistenceFailure):
        return "❌ I couldn't save that change. Nothing was modified, please try again."
    if isinstance(error, NotFoundError):
        return f"❌ Not found: {error}."
    if isinstance(error, DuplicateBindingError):
        return f"❌ Already bound: {error}."
    if isinstance(error, StaleCacheConflict):
        return "❌ That changed while I was working on it. Check /folder-list and retry."
    if isinstance(error, ValueError):
        return f"❌ {error}"
    if isinstance(error, RoleBotError):
        return f"❌ {error}"
    return "❌ Something went wrong."


class ConfirmNuke(discord.ui.View):
    """One-shot confirmation button for /react-nuke."""

    def __init__(self, cog: Folders, *, timeout: float) -> None:
        super().__init__(timeout=timeout)
        self.cog = cog

    @discord.ui.button(label="Confirm Nuke", style=discord.ButtonStyle.danger)
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        self.stop()
        assert interaction.guild_id is not None
        try:
            deleted = await self.cog.bot.ctx.registry.nuke(interaction.guild_id)
        except RoleBotError as exc:
            logger.error("Nuke failed in guild %s: %s", interaction.guild_id, exc)
            await self.cog.reply(interaction, describe_error(exc))
            return
        logger.info(
            "User %s nuked %d react roles in guild %s",
            interaction.user.id, deleted, interaction.guild_id,
        )
        await self.cog.reply(
            interaction,
            f"✅ Deleted {deleted} react roles. Folders are still there, now empty.",
        )


class Folders(commands.Cog, name="Folders"):
    """Folder, reaction binding and join role management."""

    def __init__(self, bot: RoleBot) -> None:
        self.bot = bot

    @property
    def registry(self):
        return self.bot.ctx.registry

    async def reply(self, interaction: discord.Interaction, content: str, **kwargs) -> None:
        ttl = self.bot.cfg.feedback_ttl_seconds
        if interaction.response.is_done():
            message = await interaction.followup.send(
                content, ephemeral=True, wait=True, **kwargs,
            )
            await message.delete(delay=ttl)
        else:
            await interaction.response.send_message(
                content, ephemeral=True, delete_after=ttl, **kwargs,
            )

    async def cog_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        original = getattr(error, "original", error)
        if isinstance(error, app_commands.MissingPermissions):
            text = "❌ You need the Manage Roles permission."
        else:
            text = describe_error(original)
            if not isinstance(original, (RoleBotError, ValueError)):
                logger.error(
                    "Command %s failed in guild %s",
                    interaction.command.name if interaction.command else "?",
                    interaction.guild_id,
                    exc_info=original,
                )
        await self.reply(interaction, text)

    # -------------------------------------------------------------------
    # Folders
    # -------------------------------------------------------------------
    @app_commands.command(name="folder-create", description="Create a folder for reaction roles.")
    @app_commands.describe(label="Folder name")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def folder_create(self, interaction: discord.Interaction, label: str) -> None:
        assert interaction.guild_id is not None
        folder = await self.registry.create_folder(interaction.guild_id, label)
        position = len(self.registry.list_folders(interaction.guild_id)) - 1
        await self.reply(interaction, f"✅ Created folder `{folder.label}` at position {position}.")

    @app_commands.command(name="folder-list", description="List folders and their roles.")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def folder_list(self, interaction: discord.Interaction) -> None:
        assert interaction.guild_id is not None
        summaries = self.registry.list_folders(interaction.guild_id)
        if not summaries:
            await self.reply(interaction, "There are no folders yet. Use /folder-create.")
            return
        embed = discord.Embed(title="Folders", color=discord.Color.blurple())
        for index in range(len(summaries)):
            folder = self.registry.get_folder_at(interaction.guild_id, index)
            embed.add_field(
                name=f"{index}. {folder.label}",
                value=self._render_roles(folder) or "*empty*",
                inline=False,
            )
        await self.reply(interaction, "", embed=embed)

    @app_commands.command(name="folder-remove", description="Delete a folder and its role bindings.")
    @app_commands.describe(position="Folder position from /folder-list")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def folder_remove(self, interaction: discord.Interaction, position: int) -> None:
        assert interaction.guild_id is not None
        folder = await self.registry.delete_folder_at(interaction.guild_id, position)
        await interaction.response.send_message(
            f"✅ Folder `{folder.label}` has been deleted. "
            f"Its {len(folder.roles)} roles are no longer bound to reactions.",
            ephemeral=True,
            delete_after=self.bot.cfg.confirm_ttl_seconds,
        )

    # -------------------------------------------------------------------
    # Bindings
    # -------------------------------------------------------------------
    @app_commands.command(name="folder-add-role", description="Bind a role to an emoji in a folder.")
    @app_commands.describe(
        position="Folder position from /folder-list",
        role="Role to hand out",
        emoji="Emoji members react with",
    )
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def folder_add_role(
        self,
        interaction: discord.Interaction,
        position: int,
        role: discord.Role,
        emoji: str,
    ) -> None:
        assert interaction.guild_id is not None
        parsed = discord.PartialEmoji.from_str(emoji.strip())
        key = emoji_key(parsed.id, parsed.name)
        if key is None:
            raise ValueError("That doesn't look like an emoji.")
        folder = self.registry.get_folder_at(interaction.guild_id, position)
        await self.registry.add_role_binding(
            interaction.guild_id, folder.id, role.id, role.name, key,
        )
        await self.reply(interaction, f"✅ {emoji} now grants {role.mention} in `{folder.label}`.")

    @app_commands.command(name="folder-remove-role", description="Remove a role from all folders and messages.")
    @app_commands.describe(role="Role to unbind")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def folder_remove_role(self, interaction: discord.Interaction, role: discord.Role) -> None:
        assert interaction.guild_id is not None
        if not await self.registry.remove_role_binding(interaction.guild_id, role.id):
            await self.reply(interaction, f"{role.mention} wasn't bound to anything.")
            return
        await self.reply(interaction, f"✅ {role.mention} is no longer bound to any reaction.")

    @app_commands.command(name="folder-post", description="Post a folder as a reaction-role message.")
    @app_commands.describe(
        position="Folder position from /folder-list",
        channel="Channel to post in",
    )
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def folder_post(
        self,
        interaction: discord.Interaction,
        position: int,
        channel: discord.TextChannel,
    ) -> None:
        assert interaction.guild_id is not None
        folder = self.registry.get_folder_at(interaction.guild_id, position)
        if not folder.roles:
            raise NotFoundError("binding", folder.label, "add roles with /folder-add-role first")

        await interaction.response.defer(ephemeral=True, thinking=True)
        embed = discord.Embed(
            title=folder.label,
            description=self._render_roles(folder),
            color=discord.Color.blurple(),
        )
        embed.set_footer(text="React to get a role, remove your reaction to drop it.")
        try:
            message = await channel.send(embed=embed)
            for binding in folder.roles:
                await message.add_reaction(self._emoji(binding.emoji_id))
        except discord.HTTPException as exc:
            logger.warning("Could not post folder %d in channel %d: %s", folder.id, channel.id, exc)
            await self.reply(interaction, f"❌ I couldn't post in {channel.mention}: {exc.text}")
            return

        try:
            await self.registry.publish_folder(interaction.guild_id, folder.id, channel.id, message.id)
        except RoleBotError:
            # Nothing was recorded, so the posted message would be dead.
            with contextlib.suppress(discord.HTTPException):
                await message.delete()
            raise
        await self.reply(interaction, f"✅ Posted `{folder.label}` in {channel.mention}.")

    # -------------------------------------------------------------------
    # Join roles
    # -------------------------------------------------------------------
    @app_commands.command(name="join-role-add", description="Give a role to every new member.")
    @app_commands.describe(role="Provisional role (must rank below all reaction roles)")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def join_role_add(self, interaction: discord.Interaction, role: discord.Role) -> None:
        assert interaction.guild_id is not None
        await self.registry.add_join_role(interaction.guild_id, role.id)
        await self.reply(interaction, f"✅ New members will get {role.mention}.")

    @app_commands.command(name="join-role-remove", description="Stop giving a role to new members.")
    @app_commands.describe(role="Join role to remove")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def join_role_remove(self, interaction: discord.Interaction, role: discord.Role) -> None:
        assert interaction.guild_id is not None
        await self.registry.remove_join_role(interaction.guild_id, role.id)
        await self.reply(interaction, f"✅ New members will no longer get {role.mention}.")

    @app_commands.command(name="join-role-list", description="List the join roles.")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def join_role_list(self, interaction: discord.Interaction) -> None:
        assert interaction.guild_id is not None
        roles = self.registry.list_join_roles(interaction.guild_id)
        if not roles:
            await self.reply(interaction, "There are no join roles.")
            return
        lines = [f"{i}. <@&{r.role_id}>" for i, r in enumerate(roles)]
        await self.reply(interaction, "Join roles:\n" + "\n".join(lines))

    # -------------------------------------------------------------------
    # Nuke
    # -------------------------------------------------------------------
    @app_commands.command(name="react-nuke", description="Remove ALL react roles for this server.")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def react_nuke(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message(
            "This action is irreversible. Confirming deletes every react role "
            "and react message set up for this server.",
            view=ConfirmNuke(self, timeout=self.bot.cfg.confirm_ttl_seconds),
            ephemeral=True,
            delete_after=self.bot.cfg.confirm_ttl_seconds,
        )

    # -------------------------------------------------------------------
    # Rendering helpers
    # -------------------------------------------------------------------
    def _emoji(self, key: str) -> discord.Emoji | discord.PartialEmoji | str:
        if key.isdigit():
            found = self.bot.get_emoji(int(key))
            if found is not None:
                return found
        return reaction_emoji(key)

    def _render_roles(self, folder: Folder) -> str:
        return "\n".join(
            f"{self._emoji(b.emoji_id)} — <@&{b.role_id}>" for b in folder.roles
        )


async def setup(bot: RoleBot) -> None:
    await bot.add_cog(Folders(bot))
