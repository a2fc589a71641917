from __future__ import annotations

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Any

from .settings import settings

logger = logging.getLogger("seqredeploy")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

_lock = Lock()
_events: deque[dict[str, Any]] = deque(maxlen=max(1, settings.journal_size))


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the root handler once for the process."""
    log_level = _LEVELS.get((level or settings.log_level).upper(), logging.INFO)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel(log_level)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)
    return logger


def log_event(
    level: str,
    message: str,
    service_name: str | None = None,
    container: str | None = None,
) -> None:
    """Log a lifecycle message and keep it in the in-memory journal.

    The journal only lives as long as the process; it backs ``/redeploy/events/``.
    """
    lvl = level.upper()
    prefix = ""
    if service_name:
        prefix += f"[{service_name}] "
    if container:
        prefix += f"({container}) "
    logger.log(_LEVELS.get(lvl, logging.INFO), "%s%s", prefix, message)
    with _lock:
        _events.append(
            {
                "ts": utc_now(),
                "level": lvl,
                "service_name": service_name,
                "container": container,
                "message": message,
            }
        )


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with _lock:
        items = list(_events)
    items.reverse()
    return items[: max(0, int(limit))]


def clear() -> None:
    with _lock:
        _events.clear()
