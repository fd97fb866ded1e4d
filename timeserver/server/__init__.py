"""TCP server: line framing, session protocol and lifecycle."""

from .handler import SessionHandler, TimeServerHandler
from .service import ServerState, TimeServer
from .session import IdleStatus, Session

__all__ = [
    "IdleStatus",
    "ServerState",
    "Session",
    "SessionHandler",
    "TimeServer",
    "TimeServerHandler",
]
