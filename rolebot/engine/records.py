"""
rolebot.engine.records — Tagged Configuration Records
======================================================

Immutable value objects shared by the cache, the registry and the
persistence layer.  Every field is required; a record is never partially
populated.  Mutating a folder means building a new :class:`Folder` with
:func:`dataclasses.replace`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = [
    "RoleBinding",
    "FolderSummary",
    "Folder",
    "ReactMessage",
    "ReactMessageRow",
    "JoinRole",
]


@dataclass(frozen=True, slots=True)
class RoleBinding:
    """One emoji key bound to one role."""

    role_id: int
    role_name: str
    emoji_id: str


@dataclass(frozen=True, slots=True)
class FolderSummary:
    """Entry of a guild's ordered folder list."""

    id: int
    label: str


@dataclass(frozen=True, slots=True)
class Folder:
    """Full contents of a folder, keyed by ``id`` in the cache."""

    id: int
    label: str
    guild_id: int
    roles: tuple[RoleBinding, ...] = field(default_factory=tuple)

    @property
    def summary(self) -> FolderSummary:
        return FolderSummary(id=self.id, label=self.label)

    def binding_for_role(self, role_id: int) -> RoleBinding | None:
        for binding in self.roles:
            if binding.role_id == role_id:
                return binding
        return None

    def binding_for_emoji(self, emoji_id: str) -> RoleBinding | None:
        for binding in self.roles:
            if binding.emoji_id == emoji_id:
                return binding
        return None


@dataclass(frozen=True, slots=True)
class ReactMessage:
    """A posted message whose reactions hand out roles."""

    guild_id: int
    channel_id: int
    message_id: int


@dataclass(frozen=True, slots=True)
class ReactMessageRow:
    """One persisted placement: ``emoji_id`` on ``message_id`` grants ``role_id``."""

    guild_id: int
    channel_id: int
    message_id: int
    emoji_id: str
    role_id: int

    @property
    def message(self) -> ReactMessage:
        return ReactMessage(
            guild_id=self.guild_id,
            channel_id=self.channel_id,
            message_id=self.message_id,
        )


@dataclass(frozen=True, slots=True)
class JoinRole:
    """Provisional role granted on member join."""

    role_id: int
