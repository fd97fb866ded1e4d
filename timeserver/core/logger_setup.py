"""
Logging for the time server.

``setup_logging()`` puts one rich console handler on the root logger and gives
each server component its own level:

* ``timeserver.server.transport`` logs connection lifecycle (listener
  open/close, accepted peers, EOF with unterminated bytes) at DEBUG
* ``timeserver.server.handler`` logs client traffic at INFO and failures at ERROR
* every other ``timeserver`` logger follows the root level

``LOG_LEVEL`` replaces all of these levels at once.  A client that keeps
triggering the same error is reported once per window, not once per line.
"""

from __future__ import annotations

import collections
import copy
import logging
import logging.config
import os
import warnings
from typing import Any

__all__ = ["COMPONENT_LEVELS", "build_logging_config", "setup_logging"]

COMPONENT_LEVELS: dict[str, str] = {
    "timeserver.server.transport": "DEBUG",
    "timeserver.server.handler": "INFO",
}


class _RepeatedErrorFilter(logging.Filter):
    """Drop an ERROR record identical to one of the last *window* errors."""

    def __init__(self, window: int = 20) -> None:
        super().__init__()
        self._seen: collections.deque[tuple[str, str, str]] = collections.deque(maxlen=window)

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        if record.levelno < logging.ERROR:
            return True
        cause = record.exc_info[1] if record.exc_info else None
        key = (record.name, record.getMessage(), repr(cause))
        if key in self._seen:
            return False
        self._seen.append(key)
        return True


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> None:
    for key, value in overrides.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _merge(base[key], value)
        else:
            base[key] = value


def build_logging_config(
    overrides: dict[str, Any] | None = None, *, level: str | None = None
) -> dict[str, Any]:
    """Return the ``dictConfig`` mapping ``setup_logging()`` would apply.

    *level* (or ``LOG_LEVEL`` when omitted) sets the root and every entry of
    :data:`COMPONENT_LEVELS`; *overrides* are merged in last.
    """
    level = (level or os.getenv("LOG_LEVEL") or "").upper() or None
    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            # RichHandler only honours datefmt
            "rich": {"datefmt": "%Y-%m-%d %H:%M:%S"},
            "plain": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
        },
        "filters": {"repeated_errors": {"()": _RepeatedErrorFilter}},
        "handlers": {
            "console": {
                "class": "rich.logging.RichHandler",
                "markup": False,  # client text is logged verbatim
                "rich_tracebacks": True,
                "show_path": False,
                "formatter": "rich",
                "filters": ["repeated_errors"],
            },
        },
        "loggers": {
            name: {"level": level or default} for name, default in COMPONENT_LEVELS.items()
        },
        "root": {"handlers": ["console"], "level": level or "INFO"},
    }
    if overrides:
        _merge(config, copy.deepcopy(overrides))

    if not config.get("handlers") or not config.get("root", {}).get("handlers"):
        warnings.warn("Logging configuration missing handlers; using plain console output.")
        config["handlers"] = {"console": {"class": "logging.StreamHandler", "formatter": "plain"}}
        config.setdefault("root", {})["handlers"] = ["console"]
    return config


_CONFIGURED: bool = False


def setup_logging(config_overrides: dict[str, Any] | None = None, *, force: bool = False) -> None:
    """Configure logging once per process; later calls are ignored unless *force* is set."""
    global _CONFIGURED
    if _CONFIGURED and not force:
        return
    logging.config.dictConfig(build_logging_config(config_overrides))
    _CONFIGURED = True
