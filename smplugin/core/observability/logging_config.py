"""
Logging configuration — one setup call per plugin process.

stdout belongs to the protocol: the agent parses every line of it.
Log records therefore only ever go to stderr (and optionally a file).

Console level, highest precedence first:
    --debug  >  --verbose  >  --quiet  >  SMP_LOG_LEVEL  >  WARNING

SMP_LOG_FILE adds a file handler, at SMP_LOG_FILE_LEVEL if set.
"""

from __future__ import annotations

import logging
import os
import sys

LEVEL_ENV_VAR = "SMP_LOG_LEVEL"
FILE_ENV_VAR = "SMP_LOG_FILE"
FILE_LEVEL_ENV_VAR = "SMP_LOG_FILE_LEVEL"

# (threshold, format, datefmt): first row whose threshold >= level wins
_CONSOLE_FORMATS: list[tuple[int, str, str | None]] = [
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "sm-plugin %(levelname)s: %(message)s", None),
]

_FILE_FORMAT = "%(asctime)s %(process)d %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level name from CLI flags, falling back to the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LEVEL_ENV_VAR, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Install the stderr (and optional file) handlers on the root logger.

    Replaces any handlers already installed, so calling it again simply
    reconfigures logging.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file path.
        log_file_level: Level for the file; defaults to ``level``.
    """
    console_level = _parse_level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        root.addHandler(handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)
    logging.raiseExceptions = False


def _console_formatter(level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_CONSOLE_FORMATS[-1][1])


def _parse_level(name: str | None) -> int:
    """Numeric level for ``name``; unknown names mean WARNING."""
    value = getattr(logging, (name or "").upper(), None)
    return value if isinstance(value, int) else logging.WARNING
