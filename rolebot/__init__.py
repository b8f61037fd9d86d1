"""
RoleBot — Reaction Roles & Join Roles for Discord
==================================================
Hands out roles when members react to configured messages, grants
provisional "join roles" to new members, and lets operators organise
reaction bindings into folders.

Package layout::

    rolebot/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Delays, feedback TTLs, emoji key helper
    ├── context.py         # RoleBotContext — shared state built at startup
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (folders, react roles, join roles)
    ├── services/
    │   └── reaction_store.py  # Persistence functions (sync, via run_db)
    ├── engine/
    │   ├── events.py      # RawReaction / ReactionEvent envelopes
    │   ├── records.py     # RoleBinding, Folder, JoinRole, ReactMessage
    │   ├── cache.py       # BindingCache (in-memory bindings + folders)
    │   ├── router.py      # EventRouter + per-guild ordered lanes
    │   ├── mutator.py     # RoleMutator (idempotent add/remove)
    │   ├── join_roles.py  # JoinRoleReconciler (join grant + handoff)
    │   ├── pipeline.py    # ReactionPipeline (router → mutator → handoff)
    │   ├── registry.py    # FolderRegistry (CRUD + cascade cleanup)
    │   └── scheduler.py   # Delayed actions with cancellation tokens
    └── bot/
        ├── __main__.py    # Entry point: python -m rolebot.bot
        ├── core.py        # Bot subclass, cog loader
        ├── platform.py    # discord.py adapters for the engine protocols
        └── cogs/
            ├── reactions.py   # Raw reaction events → router
            ├── membership.py  # Joins, role deletes/updates, guild removal
            └── folders.py     # /folder-*, /join-role-*, /react-nuke
"""

__version__ = "0.1.0"
