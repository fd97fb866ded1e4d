#!/usr/bin/env python
"""
main.py - Process entry point for the time server.
Starts the metrics exporter and the TCP server, then waits for SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import logging
import os

from timeserver.core.settings import Settings
from timeserver.core.settings import settings as global_settings
from timeserver.core.telemetry import start_exporter
from timeserver.server import TimeServer
from timeserver.utils.signals import install_handlers, remove_handlers

logger = logging.getLogger(__name__)


async def main(port: int | None = None, *, app_settings: Settings | None = None) -> None:
    """
    Main asynchronous entry point.
    Runs until a shutdown signal arrives; *port* overrides ``settings.port``.
    """
    cfg = app_settings or global_settings
    start_exporter(cfg.metrics_port)

    server = TimeServer(cfg)
    await server.create_and_start(cfg.port if port is None else port)

    # Fast exit if environment variable is set (used by tests to avoid waiting forever).
    if os.environ.get("FAST_EXIT_FOR_TESTS") == "1":
        logger.info("FAST_EXIT_FOR_TESTS is set, stopping early for test.")
        await server.shutdown()
        return

    loop = asyncio.get_running_loop()
    installed = install_handlers(loop, server)
    try:
        await server.wait_closed()
    finally:
        remove_handlers(loop, installed)
    logger.info("TimeServer stopped.")
