"""
rolebot.engine.cache — In-Memory Binding Cache
===============================================

Holds everything the reaction path needs without touching the database:

* react messages per guild and the ``(guild, message, emoji) → RoleBinding``
  lookup built from their placements;
* each guild's **ordered** folder list and, separately, the folder contents
  keyed by folder id;
* each guild's ordered join roles.

The cache is owned by the event loop thread.  There are no locks: the only
writer is the :class:`~rolebot.engine.registry.FolderRegistry` (plus the
router's first-seen population path), and every read is re-done after a
suspension point by the caller.  Loading from the database happens on a
worker thread via :meth:`BindingCache.warm`; the finished snapshot is
installed on the loop thread in one step.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from rolebot.constants import IRRELEVANT_MESSAGE_CACHE_SIZE
from rolebot.database.engine import run_db
from rolebot.engine.errors import CacheCorruptionError, NotFoundError
from rolebot.engine.records import (
    Folder,
    FolderSummary,
    JoinRole,
    ReactMessage,
    ReactMessageRow,
    RoleBinding,
)
from rolebot.services import reaction_store

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

BindingKey = tuple[int, int, str]  # (guild_id, message_id, emoji key)


@dataclass(slots=True)
class _Snapshot:
    placements: list[ReactMessageRow] = field(default_factory=list)
    folders: dict[int, list[FolderSummary]] = field(default_factory=dict)
    contents: dict[int, Folder] = field(default_factory=dict)
    join_roles: dict[int, list[JoinRole]] = field(default_factory=dict)


class BindingCache:
    """Guild-scoped reaction bindings, folders and join roles.

    Usage::

        cache = BindingCache()
        await cache.warm(engine, [guild.id for guild in bot.guilds])

        binding = cache.get_binding(guild_id, message_id, "123456789")
        folder = cache.folder_at(guild_id, 0)
    """

    def __init__(self, irrelevant_cache_size: int = IRRELEVANT_MESSAGE_CACHE_SIZE) -> None:
        # message_id → ReactMessage
        self._messages: dict[int, ReactMessage] = {}
        # guild_id → {message_id}
        self._guild_messages: dict[int, set[int]] = {}
        # (guild_id, message_id, emoji) → RoleBinding
        self._bindings: dict[BindingKey, RoleBinding] = {}
        # guild_id → [FolderSummary] (creation order; index is operator-facing)
        self._guild_folders: dict[int, list[FolderSummary]] = {}
        # folder_id → Folder
        self._folder_contents: dict[int, Folder] = {}
        # guild_id → [JoinRole] (first element anchors the handoff heuristic)
        self._join_roles: dict[int, list[JoinRole]] = {}
        # message ids known NOT to carry reaction roles (LRU, bounded)
        self._irrelevant: OrderedDict[int, None] = OrderedDict()
        self._irrelevant_cache_size = irrelevant_cache_size

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    async def warm(self, engine: Engine, guild_ids: Iterable[int]) -> None:
        """Read every guild's configuration and replace the cache contents."""
        snapshot = await run_db(self._read_snapshot, engine, list(guild_ids))
        self._install(snapshot)
        logger.info(
            "BindingCache loaded: %d react messages, %d bindings, "
            "%d folders, %d join roles across %d guilds",
            len(self._messages),
            len(self._bindings),
            len(self._folder_contents),
            sum(len(v) for v in self._join_roles.values()),
            len(snapshot.folders),
        )

    async def load_guild(self, engine: Engine, guild_id: int) -> None:
        """Load one guild (e.g. after the bot joins it) without touching others."""
        snapshot = await run_db(self._read_snapshot, engine, [guild_id])
        self.purge_guild(guild_id)
        self._guild_folders[guild_id] = snapshot.folders.get(guild_id, [])
        self._folder_contents.update(snapshot.contents)
        self._join_roles[guild_id] = snapshot.join_roles.get(guild_id, [])
        self.add_placements(p for p in snapshot.placements if p.guild_id == guild_id)

    @staticmethod
    def _read_snapshot(engine: Engine, guild_ids: list[int]) -> _Snapshot:
        snapshot = _Snapshot(placements=reaction_store.get_react_messages(engine))
        for guild_id in guild_ids:
            summaries = reaction_store.get_folders(engine, guild_id)
            snapshot.folders[guild_id] = summaries
            for summary in summaries:
                roles = reaction_store.get_folder_contents(engine, summary.id)
                snapshot.contents[summary.id] = Folder(
                    id=summary.id,
                    label=summary.label,
                    guild_id=guild_id,
                    roles=tuple(roles),
                )
            snapshot.join_roles[guild_id] = reaction_store.get_join_roles(engine, guild_id)
        return snapshot

    def _install(self, snapshot: _Snapshot) -> None:
        self._messages = {}
        self._guild_messages = {}
        self._bindings = {}
        self._irrelevant.clear()
        self._guild_folders = snapshot.folders
        self._folder_contents = snapshot.contents
        self._join_roles = snapshot.join_roles
        self.add_placements(snapshot.placements)
        self.check_consistency()

    # -------------------------------------------------------------------
    # React messages & bindings
    # -------------------------------------------------------------------
    def is_react_message(self, guild_id: int, message_id: int) -> bool:
        return message_id in self._guild_messages.get(guild_id, ())

    def knows_message(self, message_id: int) -> bool:
        """True if the message is either a react message or known irrelevant."""
        return message_id in self._messages or message_id in self._irrelevant

    def get_react_message(self, message_id: int) -> ReactMessage | None:
        return self._messages.get(message_id)

    def react_messages(self, guild_id: int | None = None) -> list[ReactMessage]:
        if guild_id is None:
            return list(self._messages.values())
        return [self._messages[m] for m in self._guild_messages.get(guild_id, ())]

    def mark_irrelevant(self, message_id: int) -> None:
        self._irrelevant[message_id] = None
        self._irrelevant.move_to_end(message_id)
        while len(self._irrelevant) > self._irrelevant_cache_size:
            self._irrelevant.popitem(last=False)

    def add_placements(self, placements: Iterable[ReactMessageRow]) -> int:
        """Register persisted placements; returns how many bindings were added."""
        added = 0
        for p in placements:
            self._irrelevant.pop(p.message_id, None)
            self._messages.setdefault(p.message_id, p.message)
            self._guild_messages.setdefault(p.guild_id, set()).add(p.message_id)
            key = (p.guild_id, p.message_id, p.emoji_id)
            if key in self._bindings:
                logger.warning(
                    "Duplicate emoji %r on message %d in guild %d; keeping first binding",
                    p.emoji_id, p.message_id, p.guild_id,
                )
                continue
            self._bindings[key] = RoleBinding(
                role_id=p.role_id,
                role_name=self._role_name(p.guild_id, p.role_id),
                emoji_id=p.emoji_id,
            )
            added += 1
        return added

    def get_binding(self, guild_id: int, message_id: int, emoji: str) -> RoleBinding | None:
        return self._bindings.get((guild_id, message_id, emoji))

    def drop_message(self, message_id: int) -> ReactMessage | None:
        """Forget a react message (e.g. its channel is gone)."""
        message = self._messages.pop(message_id, None)
        if message is None:
            return None
        self._guild_messages.get(message.guild_id, set()).discard(message_id)
        for key in [k for k in self._bindings if k[1] == message_id]:
            del self._bindings[key]
        return message

    def drop_role_bindings(self, guild_id: int, role_ids: Iterable[int]) -> int:
        """Remove every message binding that grants one of *role_ids*."""
        targets = set(role_ids)
        stale = [
            key for key, b in self._bindings.items()
            if key[0] == guild_id and b.role_id in targets
        ]
        for key in stale:
            del self._bindings[key]
        self._prune_empty_messages(guild_id)
        return len(stale)

    def _prune_empty_messages(self, guild_id: int) -> None:
        live = {m for (g, m, _) in self._bindings if g == guild_id}
        for message_id in list(self._guild_messages.get(guild_id, ())):
            if message_id not in live:
                self._guild_messages[guild_id].discard(message_id)
                self._messages.pop(message_id, None)

    def _role_name(self, guild_id: int, role_id: int) -> str:
        for summary in self._guild_folders.get(guild_id, ()):
            folder = self._folder_contents.get(summary.id)
            if folder is not None:
                binding = folder.binding_for_role(role_id)
                if binding is not None:
                    return binding.role_name
        return str(role_id)

    # -------------------------------------------------------------------
    # Folders
    # -------------------------------------------------------------------
    def list_folders(self, guild_id: int) -> list[FolderSummary]:
        return list(self._guild_folders.get(guild_id, ()))

    def get_folder(self, folder_id: int) -> Folder | None:
        return self._folder_contents.get(folder_id)

    def folder_index(self, guild_id: int, folder_id: int) -> int | None:
        for index, summary in enumerate(self._guild_folders.get(guild_id, ())):
            if summary.id == folder_id:
                return index
        return None

    def folder_at(self, guild_id: int, index: int) -> Folder:
        """Return the folder at *index* of the guild's list.

        Raises
        ------
        NotFoundError
            If *index* is outside the list.
        CacheCorruptionError
            If the list entry has no contents entry.
        """
        folders = self._guild_folders.get(guild_id, [])
        if index < 0 or index >= len(folders):
            raise NotFoundError("folder", index, f"guild {guild_id} has {len(folders)} folders")
        summary = folders[index]
        folder = self._folder_contents.get(summary.id)
        if folder is None:
            raise CacheCorruptionError(
                f"folder {summary.id} listed for guild {guild_id} has no contents"
            )
        return folder

    def add_folder(self, folder: Folder) -> None:
        if folder.id in self._folder_contents:
            raise CacheCorruptionError(f"folder {folder.id} is already cached")
        self._guild_folders.setdefault(folder.guild_id, []).append(folder.summary)
        self._folder_contents[folder.id] = folder

    def remove_folder_at(self, guild_id: int, index: int) -> Folder:
        """Splice the list entry at *index*, then drop the contents entry."""
        folder = self.folder_at(guild_id, index)
        del self._guild_folders[guild_id][index]
        del self._folder_contents[folder.id]
        return folder

    def replace_folder(self, folder: Folder) -> None:
        """Swap in an updated copy of a cached folder."""
        index = self.folder_index(folder.guild_id, folder.id)
        if index is None or folder.id not in self._folder_contents:
            raise NotFoundError("folder", folder.id)
        self._folder_contents[folder.id] = folder
        self._guild_folders[folder.guild_id][index] = folder.summary

    def folder_for_role(self, guild_id: int, role_id: int) -> Folder | None:
        for summary in self._guild_folders.get(guild_id, ()):
            folder = self._folder_contents.get(summary.id)
            if folder is not None and folder.binding_for_role(role_id) is not None:
                return folder
        return None

    def remove_role_from_folders(self, guild_id: int, role_id: int) -> int:
        """Strip *role_id* out of every folder in the guild."""
        removed = 0
        for summary in self._guild_folders.get(guild_id, ()):
            folder = self._folder_contents.get(summary.id)
            if folder is None or folder.binding_for_role(role_id) is None:
                continue
            roles = tuple(b for b in folder.roles if b.role_id != role_id)
            self._folder_contents[folder.id] = replace(folder, roles=roles)
            removed += 1
        return removed

    def clear_folder_roles(self, guild_id: int) -> None:
        for summary in self._guild_folders.get(guild_id, ()):
            folder = self._folder_contents.get(summary.id)
            if folder is not None:
                self._folder_contents[folder.id] = replace(folder, roles=())

    def rename_role(self, guild_id: int, role_id: int, role_name: str) -> bool:
        changed = False
        for summary in self._guild_folders.get(guild_id, ()):
            folder = self._folder_contents.get(summary.id)
            if folder is None or folder.binding_for_role(role_id) is None:
                continue
            roles = tuple(
                replace(b, role_name=role_name) if b.role_id == role_id else b
                for b in folder.roles
            )
            self._folder_contents[folder.id] = replace(folder, roles=roles)
            changed = True
        for key, binding in list(self._bindings.items()):
            if key[0] == guild_id and binding.role_id == role_id:
                self._bindings[key] = replace(binding, role_name=role_name)
                changed = True
        return changed

    # -------------------------------------------------------------------
    # Join roles
    # -------------------------------------------------------------------
    def join_roles(self, guild_id: int) -> list[JoinRole]:
        return list(self._join_roles.get(guild_id, ()))

    def first_join_role(self, guild_id: int) -> JoinRole | None:
        roles = self._join_roles.get(guild_id)
        return roles[0] if roles else None

    def add_join_role(self, guild_id: int, join_role: JoinRole) -> None:
        roles = self._join_roles.setdefault(guild_id, [])
        if join_role not in roles:
            roles.append(join_role)

    def remove_join_role(self, guild_id: int, role_id: int) -> bool:
        roles = self._join_roles.get(guild_id, [])
        kept = [r for r in roles if r.role_id != role_id]
        self._join_roles[guild_id] = kept
        return len(kept) != len(roles)

    # -------------------------------------------------------------------
    # Guild lifecycle & invariants
    # -------------------------------------------------------------------
    def purge_guild(self, guild_id: int) -> None:
        """Drop every cache entry for a guild the bot can no longer reach."""
        for summary in self._guild_folders.pop(guild_id, []):
            self._folder_contents.pop(summary.id, None)
        for message_id in self._guild_messages.pop(guild_id, set()):
            self._messages.pop(message_id, None)
        for key in [k for k in self._bindings if k[0] == guild_id]:
            del self._bindings[key]
        self._join_roles.pop(guild_id, None)
        logger.info("Purged cache entries for guild %d", guild_id)

    def references_role(self, guild_id: int, role_id: int) -> bool:
        if any(r.role_id == role_id for r in self._join_roles.get(guild_id, ())):
            return True
        if any(k[0] == guild_id and b.role_id == role_id for k, b in self._bindings.items()):
            return True
        return self.folder_for_role(guild_id, role_id) is not None

    def check_consistency(self) -> None:
        """Raise :class:`CacheCorruptionError` if list and contents disagree."""
        listed: set[int] = set()
        for guild_id, summaries in self._guild_folders.items():
            for summary in summaries:
                folder = self._folder_contents.get(summary.id)
                if folder is None or folder.guild_id != guild_id:
                    raise CacheCorruptionError(
                        f"folder {summary.id} listed for guild {guild_id} has no contents"
                    )
                listed.add(summary.id)
        orphans = set(self._folder_contents) - listed
        if orphans:
            raise CacheCorruptionError(f"folder contents without list entry: {sorted(orphans)}")
