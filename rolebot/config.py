"""
rolebot.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for the soft settings of the bot (command prefix,
settling/handoff delays, operator feedback lifetimes, logging).  Secrets
(``DISCORD_TOKEN``, ``DATABASE_URL``) stay in ``.env``.

Usage::

    from rolebot.config import load_config

    cfg = load_config()               # reads ./config.yaml by default
    print(cfg.settle_delay_seconds)   # 1.5
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from rolebot.constants import (
    CONFIRM_TTL_SECONDS,
    FEEDBACK_TTL_SECONDS,
    HANDOFF_DELAY_SECONDS,
    SETTLE_DELAY_SECONDS,
)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RoleBotConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord
    bot_prefix: str = "rb!"

    # Reconciliation timing
    settle_delay_seconds: float = SETTLE_DELAY_SECONDS
    handoff_delay_seconds: float = HANDOFF_DELAY_SECONDS

    # Operator feedback
    feedback_ttl_seconds: float = FEEDBACK_TTL_SECONDS
    confirm_ttl_seconds: float = CONFIRM_TTL_SECONDS

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None  # Extra file sink, e.g. "errors.log"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> RoleBotConfig:
    """Read *path* and return a :class:`RoleBotConfig` instance.

    Missing keys fall back to the dataclass defaults; an empty file is a
    valid configuration.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a delay or TTL is negative, or the log level is unknown.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = RoleBotConfig()
    cfg = RoleBotConfig(
        bot_prefix=str(raw.get("bot_prefix", defaults.bot_prefix)),
        settle_delay_seconds=float(
            raw.get("settle_delay_seconds", defaults.settle_delay_seconds)
        ),
        handoff_delay_seconds=float(
            raw.get("handoff_delay_seconds", defaults.handoff_delay_seconds)
        ),
        feedback_ttl_seconds=float(
            raw.get("feedback_ttl_seconds", defaults.feedback_ttl_seconds)
        ),
        confirm_ttl_seconds=float(
            raw.get("confirm_ttl_seconds", defaults.confirm_ttl_seconds)
        ),
        log_level=str(raw.get("log_level", defaults.log_level)).upper(),
        log_file=raw.get("log_file") or None,
    )
    _validate(cfg)
    return cfg


def _validate(cfg: RoleBotConfig) -> None:
    for name in (
        "settle_delay_seconds",
        "handoff_delay_seconds",
        "feedback_ttl_seconds",
        "confirm_ttl_seconds",
    ):
        if getattr(cfg, name) < 0:
            raise ValueError(f"{name} must be >= 0, got {getattr(cfg, name)}")
    if cfg.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError(f"Unknown log_level: {cfg.log_level!r}")
