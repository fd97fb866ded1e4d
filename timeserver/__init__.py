"""
Line-oriented asyncio time server.

Clients connect over TCP, send newline-terminated UTF-8 lines and receive a
``The time is now <timestamp>`` reply for each one.  ``quit`` closes the
session.  Recently received lines are kept in a bounded, thread-safe history
that operators and tests can inspect through :class:`TimeServer`.
"""

from __future__ import annotations

from timeserver.history import BoundedHistory
from timeserver.server import TimeServer, TimeServerHandler

__all__ = ["BoundedHistory", "TimeServer", "TimeServerHandler"]

__version__ = "0.1.0"
