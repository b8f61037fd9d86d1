"""
rolebot.engine.errors — Error Taxonomy
=======================================

Every failure the reconciliation engine can observe maps onto one of these
classes.  Per-event handlers catch :class:`RoleBotError` at their boundary
and log it; operator commands turn it into a short-lived reply.
"""

from __future__ import annotations


class RoleBotError(Exception):
    """Base class for every error raised by RoleBot."""


class NotFoundError(RoleBotError):
    """A role, member, message, channel, folder or binding is absent."""

    def __init__(self, kind: str, ident: object, detail: str | None = None) -> None:
        self.kind = kind
        self.ident = ident
        msg = f"{kind} {ident} not found"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class RemoteError(RoleBotError):
    """A call against the remote platform failed."""


class PermissionDenied(RemoteError):
    """The platform rejected a mutation (missing permission / hierarchy)."""


class RateLimited(RemoteError):
    """The platform rate-limited the call.  Not retried."""


class TransientNetworkError(RemoteError):
    """Network or server-side failure.  A retry might succeed; we don't."""


class PersistenceFailure(RoleBotError):
    """The durable store failed to read or write."""


class StaleCacheConflict(RoleBotError):
    """A cached entity was invalidated between lookup and use."""


class DuplicateBindingError(RoleBotError):
    """An emoji or role is already bound in the target scope."""


class CacheCorruptionError(RoleBotError):
    """The folder list and folder contents disagree.

    Never caught by the engine: it means the cache can no longer be
    trusted and the process should be restarted.
    """
