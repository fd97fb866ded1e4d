"""Common lifecycle interface for long-running background services.

Every component that needs explicit *start/stop* control (the TCP server,
and anything a future entry point orchestrates next to it) implements this
protocol so callers can manage them with uniform logic.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

__all__ = ["ServiceABC"]


@runtime_checkable
class ServiceABC(Protocol):
    """Async lifecycle contract for background services."""

    # ------------------------------------------------------------------+
    # Required methods                                                  |
    # ------------------------------------------------------------------+

    async def start(self) -> None:  # noqa: D401 (imperative)
        """Bring the service to a *running* state.

        Implementations document what happens when ``start`` is called on an
        already running instance (no-op or a well-defined exception).
        """

    async def stop(self, *, graceful: bool = True) -> None:  # noqa: D401
        """Transition the service to a *stopped* state.

        Parameters
        ----------
        graceful:
            When *True* the service should leave in-flight work alone; when
            *False* an immediate shutdown of pending work is acceptable.
        """

    # ------------------------------------------------------------------+
    # Optional helpers                                                  |
    # ------------------------------------------------------------------+

    def is_running(self) -> bool:  # pragma: no cover
        """Return *True* if the service believes itself to be running."""
        raise NotImplementedError

    def describe(self) -> str:  # pragma: no cover
        """Human-readable one-line status summary for logs."""
        return "running" if self.is_running() else "stopped"
