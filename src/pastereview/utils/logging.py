"""Logging setup for the pastereview console script and embedding hosts.

Records go to a rotating ``pastereview.log`` (``~/.pastereview/logs`` unless
``PASTEREVIEW_LOG_DIR`` points elsewhere) and, optionally, to stderr.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["LOG_FILENAME", "get_log_path", "set_level", "setup_logging"]

LOG_FILENAME = "pastereview.log"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_LOG_DIR = Path.home() / ".pastereview" / "logs"
_QUIET_LOGGERS: tuple[str, ...] = ("asyncio",)
_log_path: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install the rotating file handler (and a console handler) on the root logger.

    Later calls return the existing log path untouched unless ``force`` is
    set; use :func:`set_level` to change verbosity after setup.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    directory = Path(log_dir or os.environ.get("PASTEREVIEW_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / LOG_FILENAME

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    set_level(level)
    _log_path = path
    return path


def set_level(level: int) -> None:
    """Apply ``level`` to the root logger and its handlers."""

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        handler.setLevel(level)
    # Third-party chatter stays at WARNING even in debug runs.
    quiet = max(level, logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet)


def get_log_path() -> Path | None:
    return _log_path
