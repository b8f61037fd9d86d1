"""
rolebot.engine.router — Reaction Event Router
==============================================

Normalizes gateway reaction payloads into canonical
:class:`~rolebot.engine.events.ReactionEvent` objects and feeds them to the
pipeline through one ordered lane per guild.

:meth:`EventRouter.submit` never suspends: a guild reaction is put on its
guild's lane the moment it arrives, and every check that has to await
(bot lookup, first-seen population) runs inside the lane consumer.  Events
for one guild are therefore routed and applied in arrival order, however
long an individual lookup takes.

Routing gates, in order:
    1. DMs (no guild) are ignored.
    2. Bot accounts are ignored.  Removal payloads carry no member, so the
       gateway is asked on demand.
    3. The emoji must yield a key (custom id, else unicode text).
    4. A message never seen before is looked up in the store and, if it
       carries reaction roles, materialized in the cache (first-seen path).
    5. The message must be one of the guild's react messages.

A routed event is handed over at ``received_at + settle_delay``, so the
delay does not stack up behind a busy lane.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from rolebot.constants import SETTLE_DELAY_SECONDS, emoji_key
from rolebot.database.engine import run_db
from rolebot.engine.cache import BindingCache
from rolebot.engine.errors import PersistenceFailure, RoleBotError
from rolebot.engine.events import RawReaction, ReactionEvent
from rolebot.engine.remote import Gateway
from rolebot.services import reaction_store

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

EventHandler = Callable[[ReactionEvent], Awaitable[Any]]
RawHandler = Callable[[RawReaction], Awaitable[Any]]


class _Lane:
    """Ordered queue + consumer task for one guild."""

    def __init__(self, guild_id: int, dispatch: RawHandler) -> None:
        self.guild_id = guild_id
        self.queue: asyncio.Queue[RawReaction] = asyncio.Queue()
        self._dispatch = dispatch
        self.task = asyncio.get_running_loop().create_task(
            self._consume(), name=f"reaction-lane-{guild_id}"
        )

    async def _consume(self) -> None:
        while True:
            raw = await self.queue.get()
            try:
                await self._dispatch(raw)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Reaction lane for guild %d failed on message %d",
                    self.guild_id, raw.message_id,
                )
            finally:
                self.queue.task_done()


class EventRouter:
    """Filters raw reactions and dispatches them onto per-guild lanes."""

    def __init__(
        self,
        cache: BindingCache,
        gateway: Gateway,
        engine: Engine,
        handler: EventHandler,
        settle_delay: float = SETTLE_DELAY_SECONDS,
    ) -> None:
        self._cache = cache
        self._gateway = gateway
        self._engine = engine
        self._handler = handler
        self._settle_delay = settle_delay
        self._lanes: dict[int, _Lane] = {}

    # -------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------
    async def route(self, raw: RawReaction) -> ReactionEvent | None:
        """Return the canonical event, or ``None`` if *raw* is irrelevant."""
        if raw.guild_id is None:
            return None

        if await self._is_bot(raw):
            return None

        key = emoji_key(raw.emoji_id, raw.emoji_name)
        if key is None:
            logger.debug("Reaction on message %d has no usable emoji key", raw.message_id)
            return None

        if not self._cache.knows_message(raw.message_id):
            await self._populate(raw)

        if not self._cache.is_react_message(raw.guild_id, raw.message_id):
            return None

        return ReactionEvent(
            guild_id=raw.guild_id,
            channel_id=raw.channel_id,
            message_id=raw.message_id,
            user_id=raw.user_id,
            emoji=key,
            direction=raw.direction,
            received_at=raw.received_at,
        )

    def submit(self, raw: RawReaction) -> bool:
        """Enqueue *raw* on its guild's lane without suspending.

        Returns ``False`` for reactions outside a guild, which are dropped.
        """
        if raw.guild_id is None:
            return False
        self._lane(raw.guild_id).queue.put_nowait(raw)
        return True

    async def _dispatch(self, raw: RawReaction) -> None:
        """Lane consumer step: route, wait out the settle delay, handle."""
        event = await self.route(raw)
        if event is None:
            return
        wait = event.received_at + self._settle_delay - time.monotonic()
        if wait > 0:
            await asyncio.sleep(wait)
        await self._handler(event)

    async def _is_bot(self, raw: RawReaction) -> bool:
        if raw.is_bot is not None:
            return raw.is_bot
        try:
            return await self._gateway.is_bot(raw.user_id)
        except RoleBotError as exc:
            logger.warning(
                "Could not resolve user %d for reaction on message %d in guild %s: %s",
                raw.user_id, raw.message_id, raw.guild_id, exc,
            )
            return True

    async def _populate(self, raw: RawReaction) -> None:
        """First-seen path: materialize the message from the store if relevant."""
        try:
            placements = await run_db(
                reaction_store.get_react_messages_by_message, self._engine, raw.message_id,
            )
        except PersistenceFailure as exc:
            logger.error(
                "Could not look up message %d in guild %s: %s",
                raw.message_id, raw.guild_id, exc,
            )
            return

        if not placements:
            self._cache.mark_irrelevant(raw.message_id)
            return

        try:
            reachable = await self._gateway.message_exists(raw.channel_id, raw.message_id)
        except RoleBotError as exc:
            logger.warning(
                "Could not confirm message %d in channel %d: %s",
                raw.message_id, raw.channel_id, exc,
            )
            reachable = True

        if not reachable:
            self._cache.mark_irrelevant(raw.message_id)
            return

        # Another event for the same message may have populated it meanwhile.
        if self._cache.get_react_message(raw.message_id) is None:
            added = self._cache.add_placements(placements)
            logger.info(
                "Materialized react message %d in guild %s with %d bindings",
                raw.message_id, raw.guild_id, added,
            )

    # -------------------------------------------------------------------
    # Lanes
    # -------------------------------------------------------------------
    def _lane(self, guild_id: int) -> _Lane:
        lane = self._lanes.get(guild_id)
        if lane is None or lane.task.done():
            lane = _Lane(guild_id, self._dispatch)
            self._lanes[guild_id] = lane
        return lane

    async def drain(self) -> None:
        """Wait until every queued reaction has been routed and handled."""
        await asyncio.gather(*(lane.queue.join() for lane in list(self._lanes.values())))

    async def close(self) -> None:
        lanes = list(self._lanes.values())
        self._lanes.clear()
        for lane in lanes:
            lane.task.cancel()
        await asyncio.gather(*(lane.task for lane in lanes), return_exceptions=True)
