from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV_VAR = "GWDEMO_LOG_LEVEL"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATEFMT = "%H:%M:%S"


class ProgressAwareHandler(logging.StreamHandler):
    """Writes log records to stderr after flushing the progress lines on stdout.

    The driver echoes progress to stdout while az calls block for minutes; without
    the flush a buffered stdout shows up after the log lines that followed it.
    """

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    def emit(self, record: logging.LogRecord) -> None:
        # Streams are looked up per record; CLI runners swap them between invocations
        self.stream = sys.stderr
        if not sys.stdout.closed:
            sys.stdout.flush()
        super().emit(record)


def parse_level(name: str) -> int:
    candidate = name.strip().upper()
    if candidate not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {name!r}; expected one of {', '.join(LOG_LEVELS)}")
    return logging.getLevelName(candidate)


def _level_from_env() -> int:
    value = os.getenv(LOG_LEVEL_ENV_VAR)
    if not value:
        return logging.INFO
    try:
        return parse_level(value)
    except ValueError:
        return logging.INFO


def configure_logging(level: str | int | None = None) -> int:
    """Route gwdemo diagnostics to stderr at ``level`` (or ``GWDEMO_LOG_LEVEL``).

    Calling it again only changes the level, so a CLI ``--log-level`` can
    override the import-time setup. Returns the level in effect.
    """
    if isinstance(level, int):
        resolved = level
    elif level:
        resolved = parse_level(level)
    else:
        resolved = _level_from_env()

    root = logging.getLogger()
    root.setLevel(resolved)
    if not any(isinstance(handler, ProgressAwareHandler) for handler in root.handlers):
        handler = ProgressAwareHandler()
        handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
        root.addHandler(handler)
    for handler in root.handlers:
        if isinstance(handler, ProgressAwareHandler):
            handler.setLevel(resolved)
    return resolved
