"""
Console logging setup.

All modules log through ``loguru.logger``. The command-line entry points
call :func:`configure_logging` once to replace the default sink with a
compact console format, switching to DEBUG output with ``--verbose``.
"""

from __future__ import annotations

import sys

from loguru import logger

CONSOLE_FORMAT = "<level>{level.icon}</level> {message}"

LEVEL_ICONS = {
    "DEBUG": "[DEBUG]",
    "INFO": "ℹ",
    "SUCCESS": "✅",
    "WARNING": "⚠️",
    "ERROR": "❌",
}


def configure_logging(verbose: bool = False) -> int:
    """
    Replace loguru's default sink with the console sink.

    Args:
        verbose: Emit DEBUG messages (commands, request URLs) when True.

    Returns:
        The id of the installed sink.
    """
    for level, icon in LEVEL_ICONS.items():
        logger.level(level, icon=icon)

    logger.remove()
    return logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format=CONSOLE_FORMAT,
        colorize=None,
    )
