"""
tests/conftest.py – test harness bootstrap.

Integration fixtures run in this order for every test that asks for a
``line_session``: find a free port → start the server on it → connect a
client.  Teardown closes the client, then stops the server.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from tests.helpers import LineSession, SessionHarnessConfig, wait_until
from timeserver.core.logger_setup import setup_logging
from timeserver.core.settings import Settings
from timeserver.server import TimeServer
from timeserver.utils.net import find_open_port

# ------------------------------------------------------------------+
# Global logging setup                                              +
# ------------------------------------------------------------------+
setup_logging({"root": {"level": "WARNING"}})


@pytest.fixture
def harness_config() -> SessionHarnessConfig:
    return SessionHarnessConfig()


@pytest.fixture
def server_settings() -> Settings:
    """Isolated settings: no .env file, loopback only, short history."""
    return Settings(_env_file=None, host="127.0.0.1", port=0, history_capacity=100)


@pytest.fixture
def server_port(harness_config: SessionHarnessConfig) -> int:
    """Port the server under test binds; the client connects to the same one."""
    return find_open_port(harness_config.port_search, harness_config.start_port)


@pytest_asyncio.fixture
async def time_server(
    server_settings: Settings, server_port: int
) -> AsyncGenerator[TimeServer, None]:
    server = TimeServer(server_settings)
    await server.create_and_start(server_port)
    yield server
    await server.stop(graceful=False)
    await wait_until(lambda: server.session_count == 0, timeout=2.0)


@pytest_asyncio.fixture
async def line_session(
    time_server: TimeServer, harness_config: SessionHarnessConfig
) -> AsyncGenerator[LineSession, None]:
    assert time_server.port is not None
    session = await LineSession.open(
        "localhost",
        time_server.port,
        timeout=harness_config.seconds_to_wait_for_connection,
    )
    yield session
    await session.close_waiting_until_closed_or_timeout()
