"""Logging for **SiteMirror**: one project logger, console plus an optional rotating file.

Workers run several mirror tasks at once, so every record is stamped with
the short id of the task that emitted it (``-`` outside of a task)::

      2024-05-01 12:00:00 | INFO     | 3f2a9c1e | bfs.visit url=https://example.com/ depth=0

Library modules log dotted event names (``bfs.visit``, ``asset.skip-dup``,
``task.state`` …) followed by ``key=value`` pairs.
"""
from __future__ import annotations

import contextlib
import contextvars
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Iterator, Union

LOGGER_NAME: Final[str] = "SiteMirror"
DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(task)s | %(message)s"

_NO_TASK: Final[str] = "-"
_TASK_ID_LEN: Final[int] = 8
_ROTATE_BYTES: Final[int] = 5 * 1024 * 1024
_ROTATE_BACKUPS: Final[int] = 3

_LevelT = Union[int, str]

_current_task: contextvars.ContextVar[str] = contextvars.ContextVar("site_mirror_task", default=_NO_TASK)


class TaskFilter(logging.Filter):
    """Adds ``record.task``: the id of the mirror task running in the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.task = _current_task.get()
        return True


@contextlib.contextmanager
def task_context(task_id: str) -> Iterator[None]:
    """Tags records logged inside the block (and in asyncio tasks spawned from it)."""
    token = _current_task.set(task_id[:_TASK_ID_LEN])
    try:
        yield
    finally:
        _current_task.reset(token)


def _attach(lg: logging.Logger, handler: logging.Handler, fmt: str) -> None:
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(TaskFilter())
    lg.addHandler(handler)


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """(Re)configure the project logger; previous handlers are closed and replaced.

    ``log_file`` adds a size-rotated UTF-8 file next to console output,
    creating its parent directory when needed.
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level.upper() if isinstance(level, str) else level)

    for old in list(lg.handlers):
        lg.removeHandler(old)
        old.close()

    _attach(lg, logging.StreamHandler(sys.stdout), log_format)
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _attach(
            lg,
            RotatingFileHandler(path, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_BACKUPS, encoding="utf-8"),
            log_format,
        )

    lg.propagate = False
    return lg


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging", "task_context", "TaskFilter", "DEFAULT_FORMAT", "LOGGER_NAME"]
