"""Install OS signal handlers that shut the server down cleanly.

``SIGINT`` (Ctrl+C) and, on POSIX, ``SIGTERM`` are routed to the target's
async ``shutdown(signal_name=...)`` coroutine.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Callable, Iterable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

__all__ = ["install_handlers", "remove_handlers"]


class _Shutdownable(Protocol):
    async def shutdown(self, signal_name: str | None = None) -> None: ...


def default_signals() -> list[signal.Signals]:
    sigs: list[signal.Signals] = [signal.SIGINT]
    if os.name != "nt":  # SIGTERM is a no-op on Windows consoles
        sigs.append(signal.SIGTERM)
    return sigs


def install_handlers(
    loop: asyncio.AbstractEventLoop,
    target: _Shutdownable,
    *,
    signals: Iterable[signal.Signals] | None = None,
) -> list[signal.Signals]:
    """Register *signals* on *loop* and forward each to ``target.shutdown()``.

    Returns the signals that were actually installed so the caller can pass
    them to :func:`remove_handlers` later.
    """
    sigs = default_signals() if signals is None else list(signals)
    pending: set[asyncio.Task[Any]] = set()

    def _make_handler(sig: signal.Signals) -> Callable[[], None]:
        def _handler() -> None:  # pragma: no cover – real signal path
            logger.info("Received signal %s, shutting down…", sig.name)
            task = loop.create_task(target.shutdown(signal_name=sig.name))
            pending.add(task)
            task.add_done_callback(pending.discard)

        return _handler

    installed: list[signal.Signals] = []
    for sig in sigs:
        try:
            loop.add_signal_handler(sig, _make_handler(sig))
        except (NotImplementedError, AttributeError, ValueError, RuntimeError) as e:
            logger.warning("Could not set %s handler: %s", sig.name, e)
            continue
        logger.debug("Registered handler for %s", sig.name)
        installed.append(sig)
    return installed


def remove_handlers(loop: asyncio.AbstractEventLoop, installed: Iterable[signal.Signals]) -> None:
    for sig in installed:
        loop.remove_signal_handler(sig)
