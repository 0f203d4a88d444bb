"""Tests for ReliableRoute.

Covers: first dial, reads and writes, transparent reconnect after the
backend drops the connection, operator restart, stale restart requests,
idempotent close, close unblocking a reader, and dial exhaustion.

Each test talks to a real loopback BackendServer.
"""
from __future__ import annotations

import socket
import threading

import pytest

from tlsdb.domain.endpoint import EndPoint
from tlsdb.errors import RouteClosedError, RouteUnavailableError
from tlsdb.routing.reliable_route import ReliableRoute, RouteState

from tests.routing.conftest import closed_port, wait_until


def test_open_blocks_until_ready(backend):
    route = ReliableRoute.open(backend.endpoint)
    try:
        assert route.state is RouteState.READY
        assert route.generation == 1
        assert backend.wait_for_accepts(1)
    finally:
        route.close()


def test_sendall_reaches_backend(backend):
    route = ReliableRoute.open(backend.endpoint)
    try:
        assert route.sendall(b"hello backend") == len(b"hello backend")
        assert backend.wait_for_bytes(13) == b"hello backend"
    finally:
        route.close()


def test_recv_reads_backend_bytes(backend):
    route = ReliableRoute.open(backend.endpoint)
    try:
        assert backend.wait_for_accepts(1)
        backend.send(b"pong")
        assert route.recv(4) == b"pong"
    finally:
        route.close()


def test_reconnects_after_backend_drop(backend):
    """A reader blocked on a dropped connection ends up on a new one."""
    route = ReliableRoute.open(backend.endpoint)
    results: list[bytes] = []
    try:
        assert backend.wait_for_accepts(1)
        backend.drop_connections()

        t = threading.Thread(target=lambda: results.append(route.recv(16)), daemon=True)
        t.start()

        assert backend.wait_for_accepts(2)
        assert wait_until(lambda: route.generation == 2)
        backend.send(b"again")
        t.join(5.0)
        assert results == [b"again"]

        route.sendall(b"after-reconnect")
        assert backend.wait_for_bytes(15).endswith(b"after-reconnect")
    finally:
        route.close()


def test_restart_dials_a_new_connection(backend):
    route = ReliableRoute.open(backend.endpoint)
    try:
        route.restart()
        assert route.wait_ready(timeout=5.0)
        assert wait_until(lambda: route.generation == 2)
        assert backend.wait_for_accepts(2)
    finally:
        route.close()


def test_stale_restart_request_is_ignored(backend):
    """A failure reported for an old connection does not tear down the new one."""
    route = ReliableRoute.open(backend.endpoint)
    try:
        route.restart()
        assert wait_until(lambda: route.generation == 2 and route.state is RouteState.READY)
        route._request_restart(1)
        assert route.state is RouteState.READY
        assert route.generation == 2
    finally:
        route.close()


def test_close_is_idempotent(backend):
    route = ReliableRoute.open(backend.endpoint)
    route.close()
    route.close()
    route.close()
    route.join(5.0)
    assert route.state is RouteState.CLOSED
    with pytest.raises(RouteClosedError):
        route.sendall(b"x")
    with pytest.raises(RouteClosedError):
        route.recv(1)


def test_close_unblocks_reader(backend):
    route = ReliableRoute.open(backend.endpoint)
    errors: list[Exception] = []

    def _reader():
        try:
            route.recv(1)
        except RouteClosedError as exc:
            errors.append(exc)

    t = threading.Thread(target=_reader, daemon=True)
    t.start()
    route.close()
    t.join(5.0)
    assert not t.is_alive()
    assert len(errors) == 1


def test_close_before_start():
    route = ReliableRoute(EndPoint.from_ip("127.0.0.1", closed_port()))
    route.close()
    assert route.state is RouteState.CLOSED
    with pytest.raises(RouteClosedError):
        route.wait_ready(timeout=1.0)


def test_dial_exhaustion_fails_route():
    attempts: list[tuple[str, int]] = []

    def _refuse(address):
        attempts.append(address)
        raise ConnectionRefusedError("refused")

    endpoint = EndPoint.from_ip("127.0.0.1", 9)
    with pytest.raises(RouteUnavailableError):
        ReliableRoute.open(endpoint, max_dial_attempts=3, connector=_refuse)
    assert attempts == [("127.0.0.1", 9)] * 3


def test_dial_exhaustion_against_closed_port():
    route = ReliableRoute(EndPoint.from_ip("127.0.0.1", closed_port()), max_dial_attempts=2)
    route.start()
    with pytest.raises(RouteUnavailableError):
        route.wait_ready(timeout=5.0)
    assert route.state is RouteState.FAILED
    with pytest.raises(RouteUnavailableError):
        route.sendall(b"x")


def test_dial_retries_until_success(backend):
    calls = {"n": 0}

    def _flaky(address):
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionRefusedError("not yet")
        return socket.create_connection(address)

    route = ReliableRoute.open(backend.endpoint, max_dial_attempts=5, connector=_flaky)
    try:
        assert route.state is RouteState.READY
        assert calls["n"] == 3
    finally:
        route.close()


def test_wait_ready_timeout():
    gate = threading.Event()

    def _slow(address):
        gate.wait(5.0)
        raise ConnectionRefusedError("late")

    route = ReliableRoute(EndPoint.from_ip("127.0.0.1", 9), max_dial_attempts=1, connector=_slow)
    route.start()
    try:
        assert route.wait_ready(timeout=0.05) is False
        assert route.state is RouteState.CONNECTING
    finally:
        gate.set()
        route.join(5.0)
    assert route.state is RouteState.FAILED
