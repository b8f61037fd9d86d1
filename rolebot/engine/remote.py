"""
rolebot.engine.remote — Collaborator Protocols
===============================================

The engine never imports discord.py.  It talks to the platform through the
two protocols below; :mod:`rolebot.bot.platform` implements them on top of
a live bot and the test-suite implements them in memory.

All methods are coroutines and every one of them is a suspension point.
Failures are reported by raising a :class:`~rolebot.engine.errors.RemoteError`
subclass or :class:`~rolebot.engine.errors.NotFoundError`.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class RoleState(Protocol):
    """Authoritative member role state held by the platform."""

    async def add_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        """Grant *role_id*.  Returns ``False`` if the member already held it."""
        ...

    async def remove_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        """Revoke *role_id*.  Returns ``False`` if the member did not hold it."""
        ...

    async def get_highest_role(self, guild_id: int, user_id: int) -> int | None:
        """Freshly fetch the member and return their top role id.

        ``None`` means the member holds no role besides @everyone.
        """
        ...

    async def remove_reaction(
        self,
        channel_id: int,
        message_id: int,
        emoji: str,
        user_id: int,
    ) -> None:
        """Take a user's reaction off a message."""
        ...


@runtime_checkable
class Gateway(Protocol):
    """Lookups against the gateway's own entity cache (with fetch fallback)."""

    async def is_bot(self, user_id: int) -> bool:
        ...

    async def message_exists(self, channel_id: int, message_id: int) -> bool:
        ...
