"""Tests for timeserver.utils.net port discovery."""

from __future__ import annotations

import random
import socket
from typing import Callable

import pytest

from timeserver.core.exceptions import PortSearchExhaustedError
from timeserver.utils.net import MAX_PORT, PortSearch, find_open_port, is_port_free


def _free_except(*busy: int) -> Callable[[int], bool]:
    return lambda port: port not in busy


def test_above_excludes_start_port() -> None:
    assert find_open_port(PortSearch.ABOVE, 20_000, is_free=_free_except()) == 20_001


def test_from_includes_start_port() -> None:
    assert find_open_port(PortSearch.FROM, 20_000, is_free=_free_except()) == 20_000


def test_sequential_search_skips_busy_ports() -> None:
    is_free = _free_except(20_000, 20_001, 20_002)
    assert find_open_port(PortSearch.FROM, 20_000, is_free=is_free) == 20_003
    assert find_open_port(PortSearch.ABOVE, 20_000, is_free=is_free) == 20_003


@pytest.mark.parametrize("search", [PortSearch.RANDOM_ABOVE, PortSearch.RANDOM_FROM])
def test_random_search_stays_in_range(search: PortSearch) -> None:
    rng = random.Random(1234)
    for _ in range(50):
        port = find_open_port(search, 60_000, is_free=_free_except(), rng=rng)
        low = 60_000 if search is PortSearch.RANDOM_FROM else 60_001
        assert low <= port <= MAX_PORT


def test_random_above_never_returns_start_port() -> None:
    start = MAX_PORT - 1
    rng = random.Random(0)
    ports = {
        find_open_port(PortSearch.RANDOM_ABOVE, start, is_free=_free_except(), rng=rng)
        for _ in range(20)
    }
    assert ports == {MAX_PORT}


def test_random_from_can_return_start_port() -> None:
    start = MAX_PORT
    assert find_open_port(PortSearch.RANDOM_FROM, start, is_free=_free_except()) == MAX_PORT


def test_random_search_is_reproducible_with_seed() -> None:
    def pick() -> int:
        return find_open_port(
            PortSearch.RANDOM_ABOVE, 16_384, is_free=_free_except(), rng=random.Random(7)
        )

    assert pick() == pick()


@pytest.mark.parametrize("search", list(PortSearch))
def test_exhausted_when_nothing_is_free(search: PortSearch) -> None:
    with pytest.raises(PortSearchExhaustedError) as excinfo:
        find_open_port(search, 65_000, is_free=lambda _port: False, max_random_attempts=10)
    assert excinfo.value.strategy == search.name
    assert excinfo.value.start_port == 65_000


def test_above_max_port_is_exhausted() -> None:
    with pytest.raises(PortSearchExhaustedError):
        find_open_port(PortSearch.ABOVE, MAX_PORT, is_free=_free_except())


@pytest.mark.parametrize("start_port", [0, -1, 65_536])
def test_rejects_invalid_start_port(start_port: int) -> None:
    with pytest.raises(ValueError):
        find_open_port(PortSearch.FROM, start_port)


def test_is_port_free_detects_listener() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen()
        port = s.getsockname()[1]
        assert is_port_free(port, "127.0.0.1") is False


def test_real_search_returns_bindable_port() -> None:
    port = find_open_port(PortSearch.RANDOM_ABOVE, 16_384)
    assert 16_384 < port <= MAX_PORT
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind(("", port))
