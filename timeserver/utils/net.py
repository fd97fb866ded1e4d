"""Local port discovery.

Tests (and anything else that needs a throw-away listening port) pick a port
with :func:`find_open_port` and one of four :class:`PortSearch` strategies.

Whether a freshly released port can be bound again depends on the platform's
handling of ``SO_REUSEADDR``: Linux only allows it once ``TIME_WAIT`` is
over, while macOS lets several sockets bind the same port.  On macOS the two
sequential strategies are therefore more likely to hand out a port another
process is about to use; the random strategies spread the risk.
"""

from __future__ import annotations

import contextlib
import random
import socket
from enum import Enum
from typing import Callable

from timeserver.core.exceptions import PortSearchExhaustedError

__all__ = [
    "MAX_PORT",
    "MIN_PORT",
    "PortSearch",
    "find_open_port",
    "is_port_free",
]

MIN_PORT = 1
MAX_PORT = 65535


class PortSearch(Enum):
    """How :func:`find_open_port` walks the port range."""

    ABOVE = "above"  # first open port > start (start excluded)
    FROM = "from"  # first open port >= start (start included)
    RANDOM_ABOVE = "random_above"  # random open port > start (start excluded)
    RANDOM_FROM = "random_from"  # random open port >= start (start included)

    @property
    def inclusive(self) -> bool:
        return self in (PortSearch.FROM, PortSearch.RANDOM_FROM)

    @property
    def randomized(self) -> bool:
        return self in (PortSearch.RANDOM_ABOVE, PortSearch.RANDOM_FROM)


def is_port_free(port: int, host: str = "") -> bool:
    """Return *True* if a TCP listener could bind *port* right now."""
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((host, port))
        except OSError:
            return False
        return True


def find_open_port(
    search: PortSearch = PortSearch.RANDOM_ABOVE,
    start_port: int = 16_384,
    *,
    is_free: Callable[[int], bool] = is_port_free,
    rng: random.Random | None = None,
    max_random_attempts: int = 100,
) -> int:
    """
    Return a port that *is_free* accepts, searching from *start_port* per *search*.

    The sequential strategies scan upwards to ``MAX_PORT``.  The random
    strategies draw up to *max_random_attempts* candidates (never more than
    the size of the range) from *rng*.

    Raises :class:`PortSearchExhaustedError` when nothing qualifies and
    :class:`ValueError` for a *start_port* outside 1-65535.
    """
    if not MIN_PORT <= start_port <= MAX_PORT:
        raise ValueError(f"start_port must be between {MIN_PORT} and {MAX_PORT}, got {start_port}")

    lowest = start_port if search.inclusive else start_port + 1
    if lowest <= MAX_PORT:
        if search.randomized:
            rng = rng or random.Random()
            attempts = min(max_random_attempts, MAX_PORT - lowest + 1)
            for _ in range(attempts):
                cand = rng.randint(lowest, MAX_PORT)
                if is_free(cand):
                    return cand
        else:
            for cand in range(lowest, MAX_PORT + 1):
                if is_free(cand):
                    return cand
    raise PortSearchExhaustedError(search.name, start_port)
