"""Logging for the ``ledger_sync`` package.

Library modules obtain loggers through :func:`get_logger` and never attach
handlers themselves. Only the entrypoint (the CLI root callback, or a host
application) calls :func:`configure_logging`, which installs one stream
handler on the ``ledger_sync`` logger.

The background paths (sheet watcher, outbound pushes) have no other error
channel than these loggers, so a host that embeds the package should configure
logging or attach its own handler to ``ledger_sync``.

Level resolution: explicit argument, then ``LEDGER_SYNC_LOG_LEVEL``, then INFO.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_ROOT_NAME = "ledger_sync"
_LEVEL_ENV = "LEDGER_SYNC_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s %(message)s"

# HTTP connection chatter drowns out the sync events at DEBUG.
_NOISY_LOGGERS = ("urllib3",)

_configured = False


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach a single ``StreamHandler`` to the package logger (idempotent).

    ``fmt`` defaults to a format that includes the thread name, since watcher
    ticks and webhook pushes log from worker threads.
    """

    global _configured
    if _configured:
        return

    resolved = _resolve_level(level)
    pkg = logging.getLogger(_ROOT_NAME)
    for handler in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    pkg.addHandler(handler)
    pkg.setLevel(resolved)
    pkg.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``.

    Until :func:`configure_logging` runs, the package logger carries a
    ``NullHandler`` so library use stays silent.
    """

    pkg = logging.getLogger(_ROOT_NAME)
    if not _configured and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
