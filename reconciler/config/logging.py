"""
Logging configuration.

Configures loguru sinks for the service, workers and scripts.
"""

import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - {message}"
)


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """
    Configure logger with console output and optional file rotation.

    Args:
        level: Minimum level for all sinks
        log_file: Path of rotating log file, None to log to stderr only
    """
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level)

    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
        )

    logger.debug(f"Logging configured: level={level}, file={log_file or '-'}")
