"""
TCP time server lifecycle.
==========================
Owns the listening endpoint, the shared message history and the session
handler.  ``create_and_start`` / ``stop_now`` mirror the small control
surface operators and tests use; ``start`` / ``stop`` make the server a
:class:`~timeserver.core.service_base.ServiceABC`.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Callable

from timeserver.core.exceptions import AlreadyStartedError
from timeserver.core.service_base import ServiceABC
from timeserver.core.settings import Settings
from timeserver.core.settings import settings as global_settings
from timeserver.history import BoundedHistory
from timeserver.server.handler import SessionHandler, TimeServerHandler
from timeserver.server.session import IdleStatus
from timeserver.server.transport import LineTransport

__all__ = ["ServerState", "TimeServer"]


class ServerState(Enum):
    NOT_STARTED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPED = auto()


class TimeServer(ServiceABC):
    def __init__(
        self,
        app_settings: Settings | None = None,
        *,
        history: BoundedHistory | None = None,
        handler_factory: Callable[[BoundedHistory], SessionHandler] | None = None,
        transport_factory: Callable[[SessionHandler, Settings], LineTransport] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings: Settings = app_settings or global_settings
        self._host: str | None = self._settings.host
        self._default_port: int = self._settings.port
        self.port: int | None = None

        if history is None:
            history = BoundedHistory(self._settings.history_capacity)
        self._history = history
        if handler_factory is None:
            handler_factory = TimeServerHandler
        self._handler: SessionHandler = handler_factory(self._history)

        if transport_factory is None:
            transport_factory = _default_transport
        self._transport: LineTransport = transport_factory(self._handler, self._settings)

        self._logger: logging.Logger = logger or logging.getLogger(__name__)
        self._state: ServerState = ServerState.NOT_STARTED
        self._shutdown_event = asyncio.Event()

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def history(self) -> BoundedHistory:
        return self._history

    @property
    def session_count(self) -> int:
        return len(self._transport.sessions)

    # ── control surface ─────────────────────────────────────────
    async def create_and_start(self, port: int) -> None:
        """Bind *port* and start accepting sessions.

        Raises :class:`AlreadyStartedError` if this instance is starting or
        running, and :class:`~timeserver.core.exceptions.BindError` if the
        port cannot be bound (the server is then left not running).
        """
        if self._state in (ServerState.STARTING, ServerState.RUNNING):
            raise AlreadyStartedError()

        previous = self._state
        self._state = ServerState.STARTING
        try:
            self._logger.info("Binding to port %d", port)
            self.port = await self._transport.bind(self._host, port)
        except BaseException:
            self._state = previous
            self.port = None
            raise

        self._state = ServerState.RUNNING
        self._shutdown_event.clear()
        self._logger.info("TimeServer listening on %s", self._address())

    async def stop_now(self) -> None:
        """Stop accepting sessions; a no-op unless running.

        Sessions that are already open stay open.
        """
        if self._state is not ServerState.RUNNING:
            return
        self._state = ServerState.STOPPED
        self._logger.info("Stopping...")
        self._transport.unbind()

    def recent_messages(self) -> tuple[str, ...]:
        return self._history.snapshot()

    # ── ServiceABC ──────────────────────────────────────────────
    async def start(self) -> None:
        await self.create_and_start(self._default_port)

    async def stop(self, *, graceful: bool = True) -> None:
        await self.stop_now()
        if not graceful:
            closed = self._transport.close_all_sessions()
            if closed:
                self._logger.info("Closed %d open session(s)", closed)

    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    def describe(self) -> str:
        """
        One-line status:

        • state (running / stopped)
        • bind address
        • open sessions and retained history
        """
        if not self.is_running():
            return "stopped"
        return (
            f"running on {self._address()}, "
            f"{self.session_count} sessions open, "
            f"{len(self._history)}/{self._history.capacity} messages retained"
        )

    # ── process shutdown ────────────────────────────────────────
    async def shutdown(self, signal_name: str | None = None) -> None:
        if signal_name:
            self._logger.info("Shutdown requested by %s", signal_name)
        await self.stop(graceful=False)
        self._shutdown_event.set()

    async def wait_closed(self) -> None:
        """Block until :meth:`shutdown` has run."""
        await self._shutdown_event.wait()

    def _address(self) -> str:
        return f"{self._host or '*'}:{self.port}"


def _default_transport(handler: SessionHandler, app_settings: Settings) -> LineTransport:
    cfg = app_settings.transport
    return LineTransport(
        handler,
        read_buffer_size=cfg.read_buffer_size,
        idle_times={IdleStatus.BOTH_IDLE: cfg.idle_time_sec},
        max_line_length=cfg.max_line_length,
        encoding=cfg.encoding,
    )
