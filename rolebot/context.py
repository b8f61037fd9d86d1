"""
rolebot.context — Shared Runtime State
=======================================

Everything the engine needs is built once at startup and handed around in
a :class:`RoleBotContext`.  No component looks up a process-wide global to
find the cache, the database or the platform.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from rolebot.config import RoleBotConfig
from rolebot.engine.cache import BindingCache
from rolebot.engine.join_roles import JoinRoleReconciler
from rolebot.engine.mutator import RoleMutator
from rolebot.engine.pipeline import ReactionPipeline
from rolebot.engine.registry import FolderRegistry
from rolebot.engine.remote import Gateway, RoleState
from rolebot.engine.router import EventRouter
from rolebot.engine.scheduler import Scheduler

if TYPE_CHECKING:
    from sqlalchemy import Engine


@dataclass(slots=True)
class RoleBotContext:
    cfg: RoleBotConfig
    engine: Engine
    cache: BindingCache
    scheduler: Scheduler
    mutator: RoleMutator
    reconciler: JoinRoleReconciler
    pipeline: ReactionPipeline
    router: EventRouter
    registry: FolderRegistry

    async def close(self) -> None:
        """Stop lanes and pending delayed actions."""
        await self.router.close()
        await self.scheduler.close()


def build_context(
    cfg: RoleBotConfig,
    engine: Engine,
    roles: RoleState,
    gateway: Gateway,
    cache: BindingCache | None = None,
) -> RoleBotContext:
    """Wire the engine components together."""
    cache = cache if cache is not None else BindingCache()
    scheduler = Scheduler()
    mutator = RoleMutator(cache, roles)
    reconciler = JoinRoleReconciler(
        cache, roles, scheduler, handoff_delay=cfg.handoff_delay_seconds,
    )
    pipeline = ReactionPipeline(mutator, reconciler)
    router = EventRouter(
        cache, gateway, engine, pipeline.process, settle_delay=cfg.settle_delay_seconds,
    )
    registry = FolderRegistry(cache, engine)
    return RoleBotContext(
        cfg=cfg,
        engine=engine,
        cache=cache,
        scheduler=scheduler,
        mutator=mutator,
        reconciler=reconciler,
        pipeline=pipeline,
        router=router,
        registry=registry,
    )
