"""Per-connection state owned by :class:`timeserver.server.transport.LineTransport`.

A :class:`Session` is created when a connection is accepted and discarded
when it closes.  Handlers only ever see it through the narrow surface they
need: write a line, close, read the idle counters.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from enum import Enum
from typing import Any, Callable

from timeserver.server.codec import encode_line

__all__ = ["IdleStatus", "Session"]

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class IdleStatus(Enum):
    """Which direction of traffic has been quiet."""

    READER_IDLE = "reader_idle"
    WRITER_IDLE = "writer_idle"
    BOTH_IDLE = "both_idle"


class Session:
    """One accepted TCP connection."""

    def __init__(
        self,
        writer: asyncio.StreamWriter,
        *,
        encoding: str = "utf-8",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.id: int = next(_session_ids)
        self._writer = writer
        self._encoding = encoding
        self._clock = clock
        self._closing = False

        self.remote_address: Any = writer.get_extra_info("peername")
        self.created_at: float = clock()
        self.last_read_time: float = self.created_at
        self.last_write_time: float = self.created_at
        self.written_lines: int = 0

        self._idle_counts: dict[IdleStatus, int] = {status: 0 for status in IdleStatus}
        self._last_idle_time: dict[IdleStatus, float] = {
            status: self.created_at for status in IdleStatus
        }

    # ------------------------------------------------------------------+
    #  Liveness                                                          |
    # ------------------------------------------------------------------+

    @property
    def is_closing(self) -> bool:
        return self._closing or self._writer.is_closing()

    @property
    def is_active(self) -> bool:
        return not self.is_closing

    def close_now(self) -> None:
        """Close the connection immediately; repeated calls are no-ops."""
        if self._closing:
            return
        self._closing = True
        logger.debug("Session %d: closing", self.id)
        self._writer.close()

    async def wait_closed(self) -> None:
        await self._writer.wait_closed()

    # ------------------------------------------------------------------+
    #  Output                                                            |
    # ------------------------------------------------------------------+

    def write(self, text: str) -> bool:
        """Queue *text* as one line; returns *False* if the session is already closing.

        Delivery failures are not reported here – they surface on the next
        :meth:`flush` and reach the handler through ``exception_caught``.
        """
        if self.is_closing:
            logger.debug("Session %d: dropping write on closing session", self.id)
            return False
        self._writer.write(encode_line(text, self._encoding))
        self.written_lines += 1
        self.mark_write()
        return True

    async def flush(self) -> None:
        if not self.is_closing:
            await self._writer.drain()

    # ------------------------------------------------------------------+
    #  Idle bookkeeping                                                  |
    # ------------------------------------------------------------------+

    def mark_read(self) -> None:
        self.last_read_time = self._clock()
        self._idle_counts[IdleStatus.READER_IDLE] = 0
        self._idle_counts[IdleStatus.BOTH_IDLE] = 0

    def mark_write(self) -> None:
        self.last_write_time = self._clock()
        self._idle_counts[IdleStatus.WRITER_IDLE] = 0
        self._idle_counts[IdleStatus.BOTH_IDLE] = 0

    def last_io_time(self, status: IdleStatus) -> float:
        if status is IdleStatus.READER_IDLE:
            return self.last_read_time
        if status is IdleStatus.WRITER_IDLE:
            return self.last_write_time
        return max(self.last_read_time, self.last_write_time)

    def next_idle_deadline(self, status: IdleStatus, threshold: float) -> float:
        """Monotonic time at which *status* next counts as idle.

        Measured from the later of the last matching I/O and the last idle
        notification, so a quiet session is reported once per *threshold*.
        """
        return max(self.last_io_time(status), self._last_idle_time[status]) + threshold

    def mark_idle(self, status: IdleStatus, now: float) -> int:
        self._idle_counts[status] += 1
        self._last_idle_time[status] = now
        return self._idle_counts[status]

    def get_idle_count(self, status: IdleStatus) -> int:
        return self._idle_counts[status]

    def __repr__(self) -> str:
        state = "closing" if self.is_closing else "active"
        return f"Session(id={self.id}, remote={self.remote_address!r}, {state})"
