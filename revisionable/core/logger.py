"""Logging switch for revisionable.

Library modules log through loguru under the "revisionable" name. The package
disables that name on import, so a host sees nothing until it calls
enable_logging(), which adds sinks filtered to revisionable records and leaves
the host's own loguru handlers alone.
"""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

from revisionable.config.settings import settings

LOGGER_NAME = "revisionable"

_handler_ids: list[int] = []


def enable_logging(
    level: str | None = None,
    sink: Any = sys.stderr,
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Emit revisionable log records to a sink and an optional rotating file.

    Calling it again replaces the sinks added by the previous call.

    Args:
        level: Minimum level; defaults to LOG_LEVEL from settings
        sink: Any loguru sink (stream, callable, path)
        log_file: Optional path to an extra log file, rotated and zipped
        rotation: Log rotation size (e.g., "10 MB", "1 day")
        retention: Log retention period (e.g., "7 days", "1 month")
    """
    level = level or settings.log_level
    _remove_handlers()
    logger.enable(LOGGER_NAME)

    _handler_ids.append(
        logger.add(
            sink,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
            level=level,
            filter=LOGGER_NAME,
        )
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _handler_ids.append(
            logger.add(
                log_path,
                format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
                level=level,
                filter=LOGGER_NAME,
                rotation=rotation,
                retention=retention,
                compression="zip",
                diagnose=False,
            )
        )

    logger.debug(f"revisionable logging enabled at {level}")


def disable_logging() -> None:
    """Remove the sinks added by enable_logging() and silence revisionable records."""
    _remove_handlers()
    logger.disable(LOGGER_NAME)


def _remove_handlers() -> None:
    while _handler_ids:
        logger.remove(_handler_ids.pop())
