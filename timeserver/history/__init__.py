"""Public re-exports for the message history store."""

from .bounded import BoundedHistory

__all__ = ["BoundedHistory"]
