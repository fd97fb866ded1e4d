#!/usr/bin/env python
"""
core/exceptions.py - Central module for custom exception classes.

Lifecycle errors (:class:`AlreadyStartedError`, :class:`BindError`) propagate to
the caller of :class:`timeserver.server.TimeServer`.  Per-session errors
(:class:`SessionError` and subclasses) are handed to the session handler and
never leave the session they belong to.
"""

from __future__ import annotations


class TimeServerError(Exception):
    """
    Base class for time-server exceptions with a unified error message format.
    """

    def __init__(self, message: str):
        super().__init__(f"[TimeServerError] {message}")


class AlreadyStartedError(TimeServerError, RuntimeError):
    """Raised when ``create_and_start`` is called on a server that is already running."""

    def __init__(self) -> None:
        Exception.__init__(self, "Already started")


class BindError(TimeServerError):
    """Raised when the listening socket cannot be bound."""

    def __init__(self, host: str | None, port: int, reason: str = "bind failed"):
        super().__init__(f"I/O error binding to {host or '*'}:{port}: {reason}")
        self.host = host
        self.port = port
        self.reason = reason


class SessionError(TimeServerError):
    """A transport failure on one session (reset, broken pipe, ...)."""

    def __init__(self, session_id: int, reason: str = "I/O error"):
        super().__init__(f"session {session_id}: {reason}")
        self.session_id = session_id
        self.reason = reason


class LineTooLongError(SessionError):
    """Raised (recoverably) when a decoded line exceeds the codec limit."""

    def __init__(self, session_id: int, limit: int):
        super().__init__(session_id, f"line exceeds {limit} bytes, discarded")
        self.limit = limit


class PortSearchExhaustedError(TimeServerError):
    """Raised when no free port matches the requested search strategy."""

    def __init__(self, strategy: str, start_port: int):
        super().__init__(f"No free port found searching {strategy} from {start_port}")
        self.strategy = strategy
        self.start_port = start_port


class ConnectionTimeoutError(TimeServerError):
    """Raised when a test client cannot connect to the server under test in time."""

    def __init__(self, host: str, port: int, timeout: float):
        super().__init__(
            f"Did not connect to {host}:{port} within {timeout:g}s "
            "(is the server under test started before connecting?)"
        )
        self.host = host
        self.port = port
        self.timeout = timeout
