"""
Logging configuration for the ``compiler-probe`` command.

Library callers keep whatever logging their host build system set up;
only the CLI calls ``configure_from_env``. Every module does
``logger = logging.getLogger(__name__)`` and inherits this config.

Console level, highest precedence first:
    --debug / --verbose / --quiet  >  CPROBE_LOG_LEVEL  >  WARNING

CPROBE_LOG_FILE adds a file handler (level CPROBE_LOG_FILE_LEVEL, or
the console level). The file always records thread names, since probes
for different compilers run side by side.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

# (most verbose level the format applies to, format, datefmt)
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    # probe command lines are logged at DEBUG, so show where they came from
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s:%(lineno)d — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# psutil logs process-table churn while trees are killed
_NOISY_LOGGERS = ("psutil", "urllib3")


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level from CLI flags, then CPROBE_LOG_LEVEL."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if environ is None else environ
    return env.get("CPROBE_LOG_LEVEL") or "WARNING"


def configure_from_env(level: str, environ: Mapping[str, str] | None = None) -> None:
    """``setup_logging`` with file output taken from CPROBE_LOG_FILE*."""
    env = os.environ if environ is None else environ
    setup_logging(
        level=level,
        log_file=env.get("CPROBE_LOG_FILE") or None,
        log_file_level=env.get("CPROBE_LOG_FILE_LEVEL") or None,
        quiet_third_party=_parse_level(level) > logging.DEBUG,
    )


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with console (+ optional file) output.

    Args:
        level: Console level name.
        log_file: Path of an extra log file.
        log_file_level: Level for the file (default: ``level``).
        quiet_third_party: Hold noisy third-party loggers at WARNING.
    """
    console_level = _parse_level(level)
    handlers: list[logging.Handler] = [_console_handler(console_level)]

    root_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))
        root_level = min(root_level, file_level)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(root_level)

    if quiet_third_party:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
            break
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown names fall back to WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
