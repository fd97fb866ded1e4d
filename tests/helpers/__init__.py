"""
tests.helpers
-------------
Centralised utility functions for the test-suite.
Add new helpers here instead of sprinkling them across ad-hoc files.
"""

from .session import LineSession, SessionHarnessConfig, wait_until

__all__: list[str] = ["LineSession", "SessionHarnessConfig", "wait_until"]
