"""
asyncio line transport.
=======================
Accepts TCP connections on ``host:port`` and turns each into a
:class:`~timeserver.server.session.Session`.

* one task per connection reads ``read_buffer_size`` chunks, frames them into
  lines and hands them to the handler **in arrival order**
* one watcher task per connection raises idle notifications
* every handler call is guarded – a failing callback is reported through
  ``exception_caught`` and never tears down the listener or other sessions
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from timeserver.core import telemetry
from timeserver.core.exceptions import BindError, LineTooLongError, SessionError
from timeserver.server.codec import LineDecoder
from timeserver.server.handler import SessionHandler
from timeserver.server.session import IdleStatus, Session

__all__ = ["LineTransport"]


class LineTransport:
    def __init__(
        self,
        handler: SessionHandler,
        *,
        read_buffer_size: int = 2048,
        idle_times: Mapping[IdleStatus, float] | None = None,
        max_line_length: int = 1024,
        encoding: str = "utf-8",
        start_server_fn: Callable[..., Awaitable[Any]] = asyncio.start_server,
        monotonic: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        if read_buffer_size <= 0:
            raise ValueError("read_buffer_size must be positive")
        self._handler = handler
        self._read_buffer_size = read_buffer_size
        self._idle_times: dict[IdleStatus, float] = dict(idle_times or {})
        self._max_line_length = max_line_length
        self._encoding = encoding

        # Injected helpers for testability
        self._start_server_fn = start_server_fn
        self._monotonic = monotonic
        self._sleep_fn = sleep_fn
        self._logger: logging.Logger = logger or logging.getLogger(__name__)

        self._server: asyncio.AbstractServer | None = None
        self._sessions: dict[int, Session] = {}
        self.port: int | None = None

    # ── public API ──────────────────────────────────────────────
    @property
    def is_bound(self) -> bool:
        return self._server is not None

    @property
    def sessions(self) -> tuple[Session, ...]:
        return tuple(self._sessions.values())

    async def bind(self, host: str | None, port: int) -> int:
        """Start listening; returns the bound port (useful when *port* is 0)."""
        if self._server is not None:
            raise RuntimeError("transport is already bound")
        if not 0 <= port <= 65535:
            raise BindError(host, port, "port must be 0-65535")
        try:
            server = await self._start_server_fn(
                self._accept,
                host=host,
                port=port,
                reuse_address=True,
            )
        except (OSError, OverflowError) as exc:
            # Nothing is bound on failure; the caller sees a clean error.
            raise BindError(host, port, getattr(exc, "strerror", None) or str(exc)) from exc

        self._server = server
        sockets = getattr(server, "sockets", None) or ()
        self.port = sockets[0].getsockname()[1] if sockets else port
        self._logger.debug("Listening on %s:%s", host or "*", self.port)
        return self.port

    def unbind(self) -> None:
        """Close the listening socket(s); open sessions are left alone."""
        if self._server is None:
            return
        self._server.close()
        self._server = None
        self._logger.debug("Listener on port %s closed", self.port)

    def close_all_sessions(self) -> int:
        sessions = self.sessions
        for session in sessions:
            session.close_now()
        return len(sessions)

    # ── connection lifecycle ────────────────────────────────────
    async def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        session = Session(writer, encoding=self._encoding, clock=self._monotonic)
        self._sessions[session.id] = session
        telemetry.record_session_opened()
        self._logger.debug("Session %d created for %s", session.id, session.remote_address)

        idle_task: asyncio.Task[None] | None = None
        if self._idle_times:
            idle_task = asyncio.create_task(self._watch_idle(session))
        try:
            await self._dispatch(self._handler.session_opened, session)
            await self._read_loop(session, reader)
        finally:
            if idle_task is not None:
                idle_task.cancel()
                await asyncio.gather(idle_task, return_exceptions=True)
            await self._close(session)
            self._sessions.pop(session.id, None)
            telemetry.record_session_closed()
            await self._dispatch(self._handler.session_closed, session)

    async def _read_loop(self, session: Session, reader: asyncio.StreamReader) -> None:
        decoder = LineDecoder(self._max_line_length, self._encoding)
        while not session.is_closing:
            try:
                chunk = await reader.read(self._read_buffer_size)
            except (ConnectionError, OSError) as exc:
                await self._report(session, _session_error(session, exc))
                return
            if not chunk:
                self._logger.debug(
                    "Session %d: peer closed (%d bytes unterminated)", session.id, decoder.pending
                )
                return

            session.mark_read()
            for line in decoder.feed(chunk):
                if session.is_closing:
                    break
                await self._dispatch(self._handler.message_received, session, line)

            for _ in range(decoder.take_overflows()):
                await self._report(session, LineTooLongError(session.id, self._max_line_length))

            try:
                await session.flush()
            except (ConnectionError, OSError) as exc:
                await self._report(session, _session_error(session, exc))
                return

    async def _watch_idle(self, session: Session) -> None:
        while not session.is_closing:
            now = self._monotonic()
            delays: list[float] = []
            for status, threshold in self._idle_times.items():
                deadline = session.next_idle_deadline(status, threshold)
                if deadline <= now:
                    session.mark_idle(status, now)
                    await self._dispatch(self._handler.session_idle, session, status)
                    deadline = session.next_idle_deadline(status, threshold)
                delays.append(deadline - now)
            await self._sleep_fn(max(min(delays), 0.0))

    async def _close(self, session: Session) -> None:
        session.close_now()
        try:
            await session.wait_closed()
        except (ConnectionError, OSError) as exc:
            # Peer already gone; the socket is closed either way.
            self._logger.debug("Session %d: %s while closing", session.id, exc)

    # ── handler plumbing ────────────────────────────────────────
    async def _dispatch(
        self, callback: Callable[..., Awaitable[None]], session: Session, *args: Any
    ) -> None:
        try:
            await callback(session, *args)
        except Exception as exc:
            await self._report(session, exc)

    async def _report(self, session: Session, cause: BaseException) -> None:
        telemetry.record_session_error(type(cause).__name__)
        try:
            await self._handler.exception_caught(session, cause)
        except Exception:
            self._logger.exception("Session %d: exception_caught handler failed", session.id)


def _session_error(session: Session, exc: BaseException) -> SessionError:
    err = SessionError(session.id, f"{type(exc).__name__}: {exc}")
    err.__cause__ = exc
    return err
