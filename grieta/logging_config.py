"""Logging setup shared by the web app and the command-line tools."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s: %(message)s"

# Bibliothèques trop bavardes en INFO
QUIET_LOGGERS = ("aiohttp", "urllib3", "uvicorn.access", "sqlalchemy.engine")


def _resolve_level(level: Optional[str]) -> int:
    if not level:
        return logging.INFO
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> int:
    """
    Configure le logging racine vers stdout.

    Args:
        level: DEBUG, INFO, WARNING, ERROR ou CRITICAL (INFO si absent ou inconnu)

    Returns:
        Le niveau effectivement appliqué
    """
    log_level = _resolve_level(level)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("grieta").setLevel(log_level)
    # le client Riot logge chaque 429 : jamais en DEBUG
    logging.getLogger("grieta.riot").setLevel(max(log_level, logging.INFO))

    logger = logging.getLogger("grieta.logging_config")
    if level and not isinstance(logging.getLevelName(level.upper()), int):
        logger.warning("Unknown LOG_LEVEL %r, falling back to INFO", level)
    logger.info(f"Logging initialized at level: {logging.getLevelName(log_level)}")
    return log_level
