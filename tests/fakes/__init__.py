"""
Test Fakes Module
=================

Lightweight stand-ins for the transport side of a session so the protocol
handler and session bookkeeping can be unit tested without sockets.
"""

from .fake_handler import RecordingHandler
from .fake_session import FakeSession
from .fake_stream import FakeWriter

__all__ = [
    "FakeSession",
    "FakeWriter",
    "RecordingHandler",
]
