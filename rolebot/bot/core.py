"""
rolebot.bot.core — Bot Instance & Cog Loader
=============================================

Defines :class:`RoleBot`, a ``commands.Bot`` subclass that:

1. Builds the :class:`~rolebot.context.RoleBotContext` once, with discord.py
   adapters for the engine's role-state and gateway protocols.
2. Loads every cog in ``rolebot/bot/cogs/``.
3. On ready: syncs the slash-command tree (guild-scoped when
   ``DEV_GUILD_ID`` is set), warms the binding cache for every guild, and
   prunes react messages whose channel is no longer reachable.
4. On close: stops reaction lanes and pending delayed actions.
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from rolebot.bot.platform import DiscordGateway, DiscordRoleState
from rolebot.config import RoleBotConfig
from rolebot.context import RoleBotContext, build_context

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "rolebot.bot.cogs.reactions",
    "rolebot.bot.cogs.membership",
    "rolebot.bot.cogs.folders",
]


class RoleBot(commands.Bot):
    """Bot subclass carrying the shared :class:`RoleBotContext`.

    Parameters
    ----------
    cfg:
        The parsed :class:`RoleBotConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` for the RoleBot tables.
    """

    def __init__(self, cfg: RoleBotConfig, engine: Engine) -> None:
        # GUILD_MEMBERS is privileged: needed for on_member_join and for
        # an accurate member cache when checking held roles.
        intents = discord.Intents.default()
        intents.members = True
        intents.reactions = True
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description="Reaction roles and join roles.",
        )

        self.gateway = DiscordGateway(self)
        self.ctx: RoleBotContext = build_context(
            cfg, engine, roles=DiscordRoleState(self), gateway=self.gateway,
        )
        self._cache_warmed = False

    @property
    def cfg(self) -> RoleBotConfig:
        return self.ctx.cfg

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load cog extensions.  A broken cog is logged, not fatal."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the guild cache is populated."""
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        # --- Slash-command sync ---------------------------------------------
        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

        # on_ready fires again after reconnects; the cache survives those.
        if self._cache_warmed:
            return
        await self.ctx.cache.warm(self.ctx.engine, [g.id for g in self.guilds])
        self._cache_warmed = True
        await self._prune_unreachable_messages()

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await self.ctx.close()
        await super().close()

    # -----------------------------------------------------------------------
    # Boot-time housekeeping
    # -----------------------------------------------------------------------
    async def _prune_unreachable_messages(self) -> None:
        """Forget react messages whose channel can no longer be fetched.

        Only the cache is pruned; the rows stay so the message comes back
        if access is restored and the bot restarts.
        """
        pruned = 0
        reachable: dict[int, bool] = {}
        for message in self.ctx.cache.react_messages():
            if message.channel_id not in reachable:
                reachable[message.channel_id] = await self.gateway.channel_reachable(
                    message.channel_id,
                )
            if not reachable[message.channel_id]:
                self.ctx.cache.drop_message(message.message_id)
                pruned += 1
        if pruned:
            logger.info("Pruned %d react messages in unreachable channels", pruned)
