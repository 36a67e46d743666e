"""Console output and logging setup.

Provides:
- ANSI color decisions (``--no-color``, ``NO_COLOR``, non-TTY streams)
- ColorFormatter, which colors records by level or by an explicit
  ``extra={"color": ...}`` hint
- setup_logging(), the single place logging is configured
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

ANSI_COLORS = {
    "red": "\033[0;31m",
    "green": "\033[0;32m",
    "yellow": "\033[1;33m",
    "blue": "\033[0;34m",
}
ANSI_RESET = "\033[0m"

LEVEL_COLORS = {
    logging.ERROR: "red",
    logging.CRITICAL: "red",
    logging.WARNING: "yellow",
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def should_use_color(no_color: bool = False, stream: TextIO | None = None) -> bool:
    """Decide whether ANSI colors should be written to stream.

    Args:
        no_color: Explicit opt-out from the command line
        stream: Output stream (defaults to stderr, where logs go)

    Returns:
        True when colors are enabled

    """
    if no_color or os.environ.get("NO_COLOR"):
        return False
    stream = stream if stream is not None else sys.stderr
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def colorize(text: str, color: str | None, enabled: bool = True) -> str:
    """Wrap text in the ANSI sequence for color when enabled."""
    if not enabled or not color or color not in ANSI_COLORS:
        return text
    return f"{ANSI_COLORS[color]}{text}{ANSI_RESET}"


class ColorFormatter(logging.Formatter):
    """Formatter that colors whole log lines.

    The palette decision is held by the formatter instance, so a disabled
    formatter never emits escape sequences.
    """

    def __init__(
        self,
        fmt: str | None = LOG_FORMAT,
        datefmt: str | None = LOG_DATEFMT,
        use_color: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = getattr(record, "color", None) or LEVEL_COLORS.get(record.levelno)
        return colorize(message, color, self.use_color)


def setup_logging(verbose: bool = False, use_color: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable verbose (DEBUG) logging
        use_color: Color log lines

    """
    handler = logging.StreamHandler()
    handler.setFormatter(ColorFormatter(use_color=use_color))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=[handler],
        force=True,
    )
