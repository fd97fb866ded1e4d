"""
Settings for the time server. Transport tuning lives in Settings.transport (see TransportConfig).
"""

import codecs
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings


class TransportConfig(BaseModel):
    read_buffer_size: int = 2048  # bytes per socket read, not a line limit
    idle_time_sec: float = 10.0  # BOTH_IDLE threshold, notification only
    max_line_length: int = 1024  # longer lines are discarded by the decoder
    encoding: str = "utf-8"

    model_config = {"extra": "ignore"}

    @field_validator("read_buffer_size", "max_line_length")
    @classmethod
    def _positive_size(cls, v: int) -> int:  # noqa: D401
        """Reject zero or negative buffer sizes."""
        if v <= 0:
            raise ValueError("must be a positive number of bytes")
        return v

    @field_validator("idle_time_sec")
    @classmethod
    def _positive_idle(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("idle_time_sec must be positive")
        return v

    @field_validator("encoding")
    @classmethod
    def _known_codec(cls, v: str) -> str:
        # LookupError surfaces as a ValidationError for unknown codecs
        try:
            return codecs.lookup(v).name
        except LookupError as exc:
            raise ValueError(f"unknown encoding {v!r}") from exc


class Settings(BaseSettings):
    if TYPE_CHECKING:  # pragma: no cover

        def __init__(self, **data: Any) -> None: ...

    """
    Settings for the time server.

    Every field can be overridden from the environment or a ``.env`` file:
        PORT, HOST, HISTORY_CAPACITY, METRICS_PORT
    Nested transport tuning uses the ``__`` delimiter, e.g.
        TRANSPORT__IDLE_TIME_SEC=30
    """

    port: int = 9123
    host: str | None = None  # None binds every interface

    # Rolling history of received lines shared by all sessions
    history_capacity: int = 100

    transport: TransportConfig = TransportConfig()

    # --- observability ---
    metrics_port: int = 0  # Prometheus exporter port (0 = disabled)

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
        "env_nested_delimiter": "__",  # Enable nested env vars like TRANSPORT__READ_BUFFER_SIZE
    }

    @field_validator("port", "metrics_port")
    @classmethod
    def _valid_port(cls, v: int) -> int:
        # 0 asks the OS for an ephemeral port (or disables the exporter)
        if not 0 <= v <= 65535:
            raise ValueError("port must be between 0 and 65535")
        return v

    @field_validator("history_capacity")
    @classmethod
    def _positive_capacity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("history_capacity must be positive")
        return v


settings: "Settings" = Settings()

__all__ = [
    "Settings",
    "TransportConfig",
    "settings",
]
