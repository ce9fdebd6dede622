"""Logging configuration for the shell-tasks CLI."""

from __future__ import annotations

import logging
import sys

_HANDLER_TAG = "_shell_tasks_console"


class _ConsoleNoiseFilter(logging.Filter):
    """Keep shell_tasks records; let third-party loggers through only at ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("shell_tasks"):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(*, console_level: int = logging.WARNING) -> None:
    """Install the shell-tasks stderr handler on the root logger.

    Safe to call repeatedly: a handler installed by an earlier call is
    replaced, handlers added by anything else are left alone.
    """
    root = logging.getLogger()
    root.setLevel(console_level)

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    setattr(ch, _HANDLER_TAG, True)
    root.addHandler(ch)

    logging.captureWarnings(True)
