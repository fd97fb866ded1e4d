"""Session protocol: what the server does with each decoded line.

:class:`TimeServerHandler` is driven entirely by transport callbacks.  For
every line it either closes the session (``quit``) or records the line into
the shared :class:`~timeserver.history.BoundedHistory` and answers with the
current time.  Idle and error notifications are logged, never acted upon.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Protocol, runtime_checkable

from timeserver.core import telemetry
from timeserver.history import BoundedHistory
from timeserver.server.session import IdleStatus, Session

__all__ = [
    "QUIT_COMMAND",
    "REPLY_PREFIX",
    "SessionHandler",
    "TimeServerHandler",
    "format_instant",
]

QUIT_COMMAND = "quit"
REPLY_PREFIX = "The time is now "


@runtime_checkable
class SessionHandler(Protocol):
    """Callbacks the transport invokes for each session event."""

    async def session_opened(self, session: Session) -> None: ...

    async def message_received(self, session: Session, message: str) -> None: ...

    async def session_idle(self, session: Session, status: IdleStatus) -> None: ...

    async def exception_caught(self, session: Session, cause: BaseException) -> None: ...

    async def session_closed(self, session: Session) -> None: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_instant(moment: datetime) -> str:
    """Render *moment* as ISO-8601 UTC with microseconds, e.g. ``2026-10-19T08:21:00.123456Z``."""
    if moment.tzinfo is None:
        raise ValueError("format_instant() needs a timezone-aware datetime")
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class TimeServerHandler:
    def __init__(
        self,
        history: BoundedHistory,
        *,
        clock: Callable[[], datetime] = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._history = history
        self._clock = clock
        self._logger: logging.Logger = logger or logging.getLogger(__name__)

    @property
    def history(self) -> BoundedHistory:
        return self._history

    def recent_messages(self) -> tuple[str, ...]:
        return self._history.snapshot()

    # ------------------------------------------------------------------+
    #  Transport callbacks                                               |
    # ------------------------------------------------------------------+

    async def session_opened(self, session: Session) -> None:
        self._logger.info("Session %d opened from %s", session.id, session.remote_address)

    async def message_received(self, session: Session, message: str) -> None:
        self._logger.info("Session %d received a message", session.id)

        text = message.strip()
        if text.lower() == QUIT_COMMAND:
            self._logger.info("quit received for session %d", session.id)
            telemetry.record_line("quit")
            session.close_now()
            return

        telemetry.record_line("message")
        self._history.add(text)
        telemetry.update_history_gauge(len(self._history))
        self._logger.info("Session %d: You said: %s", session.id, text)

        # Clock is read after the line is classified and recorded.
        now = self._clock()
        if session.write(REPLY_PREFIX + format_instant(now)):
            telemetry.record_reply()
            self._logger.info("Session %d: Message written...", session.id)

    async def session_idle(self, session: Session, status: IdleStatus) -> None:
        telemetry.record_idle(status.value)
        self._logger.info(
            "Session %d is idle (%s, count %d)",
            session.id,
            status.name,
            session.get_idle_count(status),
        )

    async def exception_caught(self, session: Session, cause: BaseException) -> None:
        self._logger.error(
            "TimeServerHandler caught %s for session %d",
            type(cause).__name__,
            session.id,
            exc_info=cause,
        )

    async def session_closed(self, session: Session) -> None:
        self._logger.info("Session %d closed", session.id)
