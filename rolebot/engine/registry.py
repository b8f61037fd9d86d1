"""
rolebot.engine.registry — Folder & Binding Registry
====================================================

CRUD orchestration over folders, reaction bindings and join roles.

Every mutation follows the same pattern:
  1. Validate against the cache.
  2. Write the store (``run_db``).  A :class:`PersistenceFailure` propagates
     to the caller and the cache is left untouched.
  3. Re-resolve cached entities (the write was a suspension point).
  4. Apply the same change to the cache.

Operators address folders by their position in the guild's list; the
registry keeps the list and the id-keyed contents paired by splicing the
list entry and dropping the contents entry together.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from rolebot.constants import MAX_EMOJI_KEY_LENGTH, MAX_FOLDER_LABEL_LENGTH
from rolebot.database.engine import run_db
from rolebot.engine.cache import BindingCache
from rolebot.engine.errors import DuplicateBindingError, NotFoundError, StaleCacheConflict
from rolebot.engine.records import Folder, FolderSummary, JoinRole, ReactMessage, RoleBinding
from rolebot.services import reaction_store

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class FolderRegistry:
    """Keeps the binding cache and the store consistent on every change."""

    def __init__(self, cache: BindingCache, engine: Engine) -> None:
        self._cache = cache
        self._engine = engine

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def list_folders(self, guild_id: int) -> list[FolderSummary]:
        return self._cache.list_folders(guild_id)

    def get_folder(self, guild_id: int, folder_id: int) -> Folder:
        folder = self._cache.get_folder(folder_id)
        if folder is None or folder.guild_id != guild_id:
            raise NotFoundError("folder", folder_id)
        return folder

    def get_folder_at(self, guild_id: int, index: int) -> Folder:
        return self._cache.folder_at(guild_id, index)

    def list_join_roles(self, guild_id: int) -> list[JoinRole]:
        return self._cache.join_roles(guild_id)

    # -------------------------------------------------------------------
    # Folders
    # -------------------------------------------------------------------
    async def create_folder(self, guild_id: int, label: str) -> Folder:
        label = label.strip()
        if not label or len(label) > MAX_FOLDER_LABEL_LENGTH:
            raise ValueError(f"Folder label must be 1-{MAX_FOLDER_LABEL_LENGTH} characters")

        summary = await run_db(reaction_store.create_folder, self._engine, guild_id, label)
        folder = Folder(id=summary.id, label=summary.label, guild_id=guild_id)
        self._cache.add_folder(folder)
        logger.info("Created folder %d (%r) in guild %d", folder.id, label, guild_id)
        return folder

    async def delete_folder(self, guild_id: int, folder_id: int) -> Folder:
        """Delete a folder and every binding filed in it."""
        if self._cache.folder_index(guild_id, folder_id) is None:
            raise NotFoundError("folder", folder_id, f"not in guild {guild_id}")

        await run_db(reaction_store.delete_folder, self._engine, folder_id)

        index = self._cache.folder_index(guild_id, folder_id)
        if index is None:
            raise StaleCacheConflict(f"folder {folder_id} vanished while being deleted")
        folder = self._cache.remove_folder_at(guild_id, index)
        dropped = self._cache.drop_role_bindings(guild_id, [b.role_id for b in folder.roles])
        logger.info(
            "Deleted folder %d (%r) at position %d in guild %d; %d message bindings dropped",
            folder.id, folder.label, index, guild_id, dropped,
        )
        return folder

    async def delete_folder_at(self, guild_id: int, index: int) -> Folder:
        folder = self._cache.folder_at(guild_id, index)
        return await self.delete_folder(guild_id, folder.id)

    # -------------------------------------------------------------------
    # Bindings
    # -------------------------------------------------------------------
    async def add_role_binding(
        self,
        guild_id: int,
        folder_id: int,
        role_id: int,
        role_name: str,
        emoji: str,
    ) -> Folder:
        folder = self.get_folder(guild_id, folder_id)
        if not emoji or len(emoji) > MAX_EMOJI_KEY_LENGTH:
            raise ValueError("Emoji key is empty or too long")
        if folder.binding_for_emoji(emoji) is not None:
            raise DuplicateBindingError(f"emoji {emoji!r} is already used in folder {folder.label!r}")
        owner = self._cache.folder_for_role(guild_id, role_id)
        if owner is not None:
            raise DuplicateBindingError(f"role {role_name!r} is already in folder {owner.label!r}")

        binding = RoleBinding(role_id=role_id, role_name=role_name, emoji_id=emoji)
        await run_db(reaction_store.add_react_role, self._engine, guild_id, folder_id, binding)

        current = self._cache.get_folder(folder_id)
        if current is None:
            raise StaleCacheConflict(f"folder {folder_id} was deleted while adding role {role_id}")
        updated = replace(current, roles=current.roles + (binding,))
        self._cache.replace_folder(updated)
        logger.info(
            "Bound role %d (%s) to emoji %r in folder %d, guild %d",
            role_id, role_name, emoji, folder_id, guild_id,
        )
        return updated

    async def publish_folder(
        self,
        guild_id: int,
        folder_id: int,
        channel_id: int,
        message_id: int,
    ) -> ReactMessage:
        """Register a posted message as carrying the folder's bindings."""
        folder = self.get_folder(guild_id, folder_id)
        if not folder.roles:
            raise NotFoundError("binding", folder_id, f"folder {folder.label!r} is empty")

        placements = await run_db(
            reaction_store.add_react_messages,
            self._engine, guild_id, channel_id, message_id, folder.roles,
        )
        self._cache.add_placements(placements)
        logger.info(
            "Published folder %d to message %d in channel %d, guild %d",
            folder_id, message_id, channel_id, guild_id,
        )
        return ReactMessage(guild_id=guild_id, channel_id=channel_id, message_id=message_id)

    async def remove_role_binding(self, guild_id: int, role_id: int) -> bool:
        """Remove every reference to *role_id* in the guild.

        Message bindings, join-role entries and folder contents are cleaned
        in that order; each store delete is applied to the cache as soon as
        it succeeds.  The store deletes always run, so rows the cache never
        saw are cleaned too.  Returns ``True`` if anything was referenced in
        either the cache or the store.
        """
        referenced = self._cache.references_role(guild_id, role_id)

        placements = await run_db(
            reaction_store.delete_react_message_by_role_id, self._engine, role_id,
        )
        self._cache.drop_role_bindings(guild_id, [role_id])

        join_roles = await run_db(reaction_store.delete_join_role, self._engine, role_id)
        self._cache.remove_join_role(guild_id, role_id)

        folder_roles = await run_db(
            reaction_store.delete_react_role_by_role_id, self._engine, role_id,
        )
        self._cache.remove_role_from_folders(guild_id, role_id)

        referenced = referenced or bool(placements or join_roles or folder_roles)

        if referenced:
            logger.info("Removed all bindings for role %d in guild %d", role_id, guild_id)
        return referenced

    async def handle_role_deleted(self, guild_id: int, role_id: int) -> bool:
        """Cascade cleanup after the platform deleted a role."""
        referenced = await self.remove_role_binding(guild_id, role_id)
        if referenced:
            logger.info("Role %d was deleted in guild %d; bindings cleaned up", role_id, guild_id)
        return referenced

    async def rename_role(self, guild_id: int, role_id: int, role_name: str) -> bool:
        """Keep stored role names in step with platform renames."""
        if not self._cache.references_role(guild_id, role_id):
            return False
        await run_db(reaction_store.update_role_name, self._engine, role_id, role_name)
        return self._cache.rename_role(guild_id, role_id, role_name)

    async def nuke(self, guild_id: int) -> int:
        """Delete every react message and react role of a guild.

        Folders survive, empty.  Returns the number of react roles deleted.
        """
        await run_db(reaction_store.delete_react_messages_by_guild, self._engine, guild_id)
        for message in self._cache.react_messages(guild_id):
            self._cache.drop_message(message.message_id)

        deleted = await run_db(
            reaction_store.delete_all_react_roles_by_guild, self._engine, guild_id,
        )
        self._cache.clear_folder_roles(guild_id)
        logger.info("Nuked %d react roles in guild %d", deleted, guild_id)
        return deleted

    # -------------------------------------------------------------------
    # Join roles
    # -------------------------------------------------------------------
    async def add_join_role(self, guild_id: int, role_id: int) -> JoinRole:
        if any(r.role_id == role_id for r in self._cache.join_roles(guild_id)):
            raise DuplicateBindingError(f"role {role_id} is already a join role")
        join_role = await run_db(reaction_store.add_join_role, self._engine, guild_id, role_id)
        self._cache.add_join_role(guild_id, join_role)
        logger.info("Added join role %d in guild %d", role_id, guild_id)
        return join_role

    async def remove_join_role(self, guild_id: int, role_id: int) -> JoinRole:
        if not any(r.role_id == role_id for r in self._cache.join_roles(guild_id)):
            raise NotFoundError("join role", role_id)
        await run_db(reaction_store.delete_join_role, self._engine, role_id)
        self._cache.remove_join_role(guild_id, role_id)
        logger.info("Removed join role %d in guild %d", role_id, guild_id)
        return JoinRole(role_id=role_id)

    # -------------------------------------------------------------------
    # Guild lifecycle
    # -------------------------------------------------------------------
    def purge_guild(self, guild_id: int) -> None:
        """The bot left or lost the guild: drop its cache entries."""
        self._cache.purge_guild(guild_id)
