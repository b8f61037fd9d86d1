"""
rolebot.bot.__main__ — Entry point for ``python -m rolebot.bot``
================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings, including logging).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Create the RoleBot and hand it config + engine.  The binding cache is
   warmed from the store once the gateway reports ready.
5. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m rolebot.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from rolebot.bot.core import RoleBot
from rolebot.config import RoleBotConfig, load_config
from rolebot.database.engine import create_db_engine, init_db

LOG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"

logger = logging.getLogger("rolebot")


def configure_logging(cfg: RoleBotConfig) -> None:
    """Console logging at the configured level, plus an optional file sink."""
    logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT, datefmt="%H:%M:%S")
    if cfg.log_file:
        handler = logging.FileHandler(cfg.log_file, encoding="utf-8")
        handler.setLevel(logging.WARNING)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def main() -> None:
    """Bootstrap and run RoleBot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt="%H:%M:%S")
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    try:
        cfg = load_config()
    except (FileNotFoundError, ValueError) as exc:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt="%H:%M:%S")
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)
    configure_logging(cfg)
    logger.info(
        "Config loaded — settle %.1fs, handoff %.1fs",
        cfg.settle_delay_seconds, cfg.handoff_delay_seconds,
    )

    # 3. Database.  Without the store there is nothing to reconcile against.
    try:
        engine = create_db_engine()
        init_db(engine)
    except SQLAlchemyError as exc:
        logger.critical("Could not initialise the database: %s", exc)
        sys.exit(1)

    # 4. Bot.
    bot = RoleBot(cfg=cfg, engine=engine)

    # 5. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting RoleBot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
