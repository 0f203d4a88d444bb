"""Shared fixtures for routing tests.

BackendServer is a tiny loopback TCP server that plays the part of the
real backend: it accepts connections one after another, records every
byte it receives, can push bytes back, and can drop the current
connection to exercise the reconnect path.
"""
from __future__ import annotations

import socket
import threading
import time

import pytest

from tlsdb.domain.endpoint import EndPoint


class BackendServer:
    def __init__(self) -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(8)
        self._sock.settimeout(0.2)
        self._running = True
        self._lock = threading.Lock()
        self._received = bytearray()
        self._conns: list[socket.socket] = []
        self.accepted = 0
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    @property
    def port(self) -> int:
        return self._sock.getsockname()[1]

    @property
    def endpoint(self) -> EndPoint:
        return EndPoint.from_ip("127.0.0.1", self.port)

    @property
    def received(self) -> bytes:
        with self._lock:
            return bytes(self._received)

    def wait_for_bytes(self, n: int, timeout: float = 5.0) -> bytes:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            data = self.received
            if len(data) >= n:
                return data
            time.sleep(0.01)
        return self.received

    def wait_for_accepts(self, n: int, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                if self.accepted >= n:
                    return True
            time.sleep(0.01)
        return False

    def send(self, data: bytes) -> None:
        """Send to the most recently accepted connection."""
        with self._lock:
            conn = self._conns[-1]
        conn.sendall(data)

    def drop_connections(self) -> None:
        """Close every accepted connection, keep listening."""
        with self._lock:
            conns, self._conns = self._conns, []
        for conn in conns:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            conn.close()

    def stop(self) -> None:
        self._running = False
        self.drop_connections()
        self._sock.close()
        self._thread.join(1.0)

    def _accept_loop(self) -> None:
        while self._running:
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with self._lock:
                self._conns.append(conn)
                self.accepted += 1
            threading.Thread(target=self._read_loop, args=(conn,), daemon=True).start()

    def _read_loop(self, conn: socket.socket) -> None:
        while True:
            try:
                data = conn.recv(4096)
            except OSError:
                return
            if not data:
                return
            with self._lock:
                self._received.extend(data)


@pytest.fixture()
def backend_factory():
    """Factory for BackendServer instances, all stopped after the test."""
    servers: list[BackendServer] = []

    def _create() -> BackendServer:
        srv = BackendServer()
        servers.append(srv)
        return srv

    yield _create

    for s in servers:
        s.stop()


@pytest.fixture()
def backend(backend_factory) -> BackendServer:
    return backend_factory()


def closed_port() -> int:
    """A loopback port with nothing listening on it."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


class FakeRoute:
    """In-memory stand-in for ReliableRoute: records writes, counts closes."""

    def __init__(self, endpoint: EndPoint) -> None:
        self.endpoint = endpoint
        self.sent = bytearray()
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def sendall(self, data: bytes) -> int:
        self.sent.extend(data)
        return len(data)

    def close(self) -> None:
        self.close_calls += 1


class FakeRouteFactory:
    """Route factory that hands out FakeRoutes and remembers them."""

    def __init__(self) -> None:
        self.created: list[FakeRoute] = []

    def __call__(self, endpoint: EndPoint) -> FakeRoute:
        route = FakeRoute(endpoint)
        self.created.append(route)
        return route


@pytest.fixture()
def route_factory() -> FakeRouteFactory:
    return FakeRouteFactory()


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
