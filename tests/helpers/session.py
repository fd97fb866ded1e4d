"""
Client-side session harness for integration tests.

Tests that talk to a real server follow the same order the fixtures in
``tests/conftest.py`` enforce:

1. pick a port (``server_port``) with the configured :class:`PortSearch`
2. start the server under test on it (``time_server``)
3. open a :class:`LineSession` to it (``line_session``), closed after the test
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from pydantic import BaseModel, field_validator

from timeserver.core.exceptions import ConnectionTimeoutError
from timeserver.utils.net import MAX_PORT, MIN_PORT, PortSearch

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_TIMEOUT_SECONDS = 2.0


class SessionHarnessConfig(BaseModel):
    seconds_to_wait_for_connection: float = DEFAULT_CONNECTION_TIMEOUT_SECONDS
    port_search: PortSearch = PortSearch.RANDOM_ABOVE
    start_port: int = 16_384

    model_config = {"frozen": True}

    @field_validator("seconds_to_wait_for_connection")
    @classmethod
    def _positive_wait(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("seconds_to_wait_for_connection must be positive")
        return v

    @field_validator("start_port")
    @classmethod
    def _valid_non_zero_port(cls, v: int) -> int:
        if not MIN_PORT <= v <= MAX_PORT:
            raise ValueError("start_port must be a valid non-zero port between 1 and 65535")
        return v


class LineSession:
    """A newline-framed UTF-8 client connection to the server under test."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    async def open(
        cls,
        host: str = "localhost",
        port: int = 0,
        *,
        timeout: float = DEFAULT_CONNECTION_TIMEOUT_SECONDS,
        retry_interval: float = 0.05,
    ) -> LineSession:
        """Connect to *host*:*port*, waiting up to *timeout* seconds for it to accept.

        Refused connections are retried until the window closes, then
        :class:`ConnectionTimeoutError` is raised.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        last_error: BaseException | None = None
        logger.debug("Connecting to port %d on %s", port, host)
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ConnectionTimeoutError(host, port, timeout) from last_error
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(host, port), timeout=remaining
                )
            except TimeoutError as exc:
                raise ConnectionTimeoutError(host, port, timeout) from exc
            except OSError as exc:
                last_error = exc
                await asyncio.sleep(min(retry_interval, max(deadline - loop.time(), 0.0)))
                continue
            return cls(reader, writer)

    @property
    def session_id(self) -> int:
        """Local port of the connection, unique among open client sessions."""
        return int(self._writer.get_extra_info("sockname")[1])

    def is_active(self) -> bool:
        return not self._writer.is_closing() and not self._reader.at_eof()

    async def write(self, message: object) -> None:
        self._writer.write(f"{message}\n".encode())
        await self._writer.drain()

    async def write_raw(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def read_line(self, timeout: float = 1.0) -> str | None:
        """Next line without its terminator, or *None* once the server closed."""
        raw = await asyncio.wait_for(self._reader.readline(), timeout=timeout)
        if not raw:
            return None
        return raw.decode().rstrip("\r\n")

    async def read_until_eof(self, timeout: float = 1.0) -> bytes:
        """Everything the server still sends before closing the connection."""
        return await asyncio.wait_for(self._reader.read(), timeout=timeout)

    def close_now(self) -> None:
        self._writer.close()

    async def close_waiting_until_closed_or_timeout(
        self, timeout: float = DEFAULT_CONNECTION_TIMEOUT_SECONDS
    ) -> bool:
        """Close and wait up to *timeout* seconds; returns *True* if it closed in time."""
        logger.debug("Closing session %d", self.session_id)
        self.close_now()
        try:
            await asyncio.wait_for(self._writer.wait_closed(), timeout=timeout)
        except TimeoutError:
            logger.warning("Session %d did not close before timeout", self.session_id)
            return False
        except ConnectionError:
            # reset by the peer counts as closed
            pass
        return True


async def wait_until(
    predicate: Callable[[], bool],
    timeout: float = 1.0,
    *,
    interval: float = 0.01,
    message: str | None = None,
) -> None:
    """Poll *predicate* until it holds, failing the test after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            raise AssertionError(message or f"condition not met within {timeout:g}s")
        await asyncio.sleep(interval)
