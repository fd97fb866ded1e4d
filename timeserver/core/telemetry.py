"""core/telemetry.py
====================
Prometheus metrics registry and helper utilities.

Every runtime metric exposed by the time server lives here, together with an
in-process HTTP exporter that Prometheus can scrape.  The transport and the
session handler depend only on the small helper functions below; they do
**not** import anything from ``prometheus_client`` directly.

The exporter is started idempotently via :func:`start_exporter`.  If the
configured port is ``0`` or the exporter is already running, the call is a
no-op.
"""

from __future__ import annotations

import logging
from errno import EADDRINUSE

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    start_http_server,
)

__all__ = [
    "REGISTRY",
    "record_session_opened",
    "record_session_closed",
    "record_line",
    "record_reply",
    "record_idle",
    "record_session_error",
    "update_history_gauge",
    "start_exporter",
]

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------+
#  Global registry                                                            +
# ---------------------------------------------------------------------------+

REGISTRY: CollectorRegistry = CollectorRegistry(auto_describe=True)

# --- session metrics -------------------------------------------------------
SESSION_TOTAL = Counter(
    "timeserver_sessions_opened_total",
    "Sessions accepted since process start",
    registry=REGISTRY,
)
SESSIONS_OPEN = Gauge(
    "timeserver_sessions_open",
    "Sessions currently connected",
    registry=REGISTRY,
)
IDLE_TOTAL = Counter(
    "timeserver_session_idle_total",
    "Idle notifications raised by idle status",
    ["status"],
    registry=REGISTRY,
)
SESSION_ERROR_TOTAL = Counter(
    "timeserver_session_errors_total",
    "Per-session failures by exception type",
    ["kind"],
    registry=REGISTRY,
)

# --- traffic metrics -------------------------------------------------------
LINE_TOTAL = Counter(
    "timeserver_lines_received_total",
    "Decoded lines received, split into ordinary messages and quit commands",
    ["kind"],
    registry=REGISTRY,
)
REPLY_TOTAL = Counter(
    "timeserver_replies_sent_total",
    "Lines written back to clients",
    registry=REGISTRY,
)
HISTORY_SIZE = Gauge(
    "timeserver_history_size",
    "Entries currently retained in the message history",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------+
#  Public helpers                                                            +
# ---------------------------------------------------------------------------+


def record_session_opened() -> None:
    SESSION_TOTAL.inc()
    SESSIONS_OPEN.inc()


def record_session_closed() -> None:
    SESSIONS_OPEN.dec()


def record_line(kind: str) -> None:
    """Count one decoded line; *kind* is ``message`` or ``quit``."""
    LINE_TOTAL.labels(kind).inc()


def record_reply() -> None:
    REPLY_TOTAL.inc()


def record_idle(status: str) -> None:
    IDLE_TOTAL.labels(status).inc()


def record_session_error(kind: str) -> None:
    SESSION_ERROR_TOTAL.labels(kind).inc()


def update_history_gauge(size: int) -> None:
    """Export the instantaneous number of retained history entries."""
    HISTORY_SIZE.set(size)


# ---------------------------------------------------------------------------+
#  Exporter bootstrap                                                        +
# ---------------------------------------------------------------------------+

_started: bool = False


def start_exporter(port: int) -> int | None:
    """Start the Prometheus HTTP exporter.

    Behaviour:
    • No-op when *port* == 0 (disabled).
    • Idempotent – subsequent calls after the first successful start return immediately.
    • If the preferred *port* is already taken, retries once on *port* + 1.

    Returns the port the exporter listens on, or ``None`` when nothing was started.
    """
    global _started
    if port == 0 or _started:
        return None

    try:
        start_http_server(port, registry=REGISTRY)
        actual = port
    except OSError as exc:
        if exc.errno == EADDRINUSE:
            alt = port + 1
            _log.warning("Metrics port %d in use – falling back to %d", port, alt)
            start_http_server(alt, registry=REGISTRY)
            actual = alt
        else:
            raise

    _started = True
    _log.info("Prometheus exporter listening on :%s/metrics", actual)
    return actual
