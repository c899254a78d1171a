"""
Root logger setup for the relay process.

The CLI calls configure_logging() once before uvicorn starts.  uvicorn's own
loggers propagate to the root logger, so server and relay messages end up in
the same handlers.  If something (pytest's log capture, an embedding app)
installed handlers first, only the level is adjusted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_log_level(name: str | int) -> int:
    """Translate a level name such as ``"debug"`` into a logging constant."""
    if isinstance(name, int):
        return name
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _build_handlers(
    log_file: Optional[str], include_console: bool
) -> list[logging.Handler]:
    formatter = logging.Formatter(DEFAULT_FORMAT)
    handlers: list[logging.Handler] = []

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))
    if include_console:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    *,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    include_console: bool = True,
    force: bool = False,
) -> None:
    """
    Install relay log handlers on the root logger.

    Args:
        level: Root logging level.
        log_file: Also append to this file (parent directories are created).
        include_console: Log to stderr.
        force: Replace handlers that are already installed.
    """
    if logging.getLogger().handlers and not force:
        logging.getLogger().setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format=DEFAULT_FORMAT,
        handlers=_build_handlers(log_file, include_console) or None,
        force=force,
    )
