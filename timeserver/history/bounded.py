from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Tuple

"""Thread-safe, fixed-capacity history of received lines.

Keeps the last *N* lines received by the server across **all** sessions,
oldest first.  Adding at capacity drops exactly the oldest entry.

Not persisted between restarts – a new server instance starts empty.
"""

__all__ = ["BoundedHistory"]


class BoundedHistory:
    """Rolling window of recently received messages."""

    def __init__(self, capacity: int) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"capacity must be a positive int, got {capacity!r}")
        self._capacity = capacity
        self._lock = threading.Lock()
        self._buf: Deque[str] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    # ---------------------------------------------------------------------
    # Public helpers
    # ---------------------------------------------------------------------
    def add(self, text: str) -> None:
        """Append *text* as the newest entry, evicting the oldest when full."""
        with self._lock:
            self._buf.append(text)

    def snapshot(self) -> Tuple[str, ...]:
        """Return an immutable copy of the history – oldest first."""
        with self._lock:
            return tuple(self._buf)

    def clear(self) -> None:
        with self._lock:
            self._buf.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buf)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(capacity={self._capacity}, size={len(self)})"
