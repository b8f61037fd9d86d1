"""
rolebot.engine.events — Gateway Event Envelopes
================================================

Gateway payloads are normalized into a :class:`RawReaction` by the cogs and
then, once the router has decided they are relevant, into a canonical
:class:`ReactionEvent`.  Nothing downstream of the router ever looks at a
discord.py object.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field

__all__ = ["Direction", "RawReaction", "ReactionEvent"]


class Direction(enum.StrEnum):
    """Whether a reaction was placed or taken back."""
    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True, slots=True)
class RawReaction:
    """A reaction add/remove as delivered by the gateway.

    ``is_bot`` is ``None`` when the gateway did not include member data
    (reaction removals never do); the router resolves it on demand.
    """

    direction: Direction
    guild_id: int | None
    channel_id: int
    message_id: int
    user_id: int
    emoji_id: int | None
    emoji_name: str | None
    is_bot: bool | None = None
    received_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True, slots=True)
class ReactionEvent:
    """Canonical reaction event, the only input to the role mutator."""

    guild_id: int
    channel_id: int
    message_id: int
    user_id: int
    emoji: str
    direction: Direction
    received_at: float = field(default_factory=time.monotonic)

    @property
    def is_add(self) -> bool:
        return self.direction is Direction.ADD

