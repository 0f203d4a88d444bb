"""Shared fixtures for interceptor tests.

ScriptedConsole replays operator input lines and captures everything the
engine prints. Route tables use the FakeRoute factory from the routing
tests unless a test needs real sockets.
"""
from __future__ import annotations

import pytest

from tlsdb.domain.endpoint import EndPoint
from tlsdb.domain.record import Record, RecordType
from tlsdb.interceptor.engine import InterceptionEngine
from tlsdb.routing.route_table import RouteTable

from tests.routing.conftest import (  # noqa: F401  (fixtures re-exported)
    FakeRouteFactory,
    backend,
    backend_factory,
)


class ScriptedConsole:
    """Console double: feeds queued lines, returns None when exhausted."""

    def __init__(self, lines: list[str] | None = None) -> None:
        self.lines = list(lines or [])
        self.output: list[str] = []
        self.prompts = 0

    def feed(self, *lines: str) -> None:
        self.lines.extend(lines)

    def read_line(self) -> str | None:
        self.prompts += 1
        if not self.lines:
            return None
        return self.lines.pop(0)

    def write(self, text: str) -> None:
        self.output.extend(text.splitlines() or [""])

    @property
    def text(self) -> str:
        return "\n".join(self.output)


def literal_resolver(host: str) -> str:
    """Resolver for tests: hosts are already dotted quads."""
    return host


@pytest.fixture()
def console() -> ScriptedConsole:
    return ScriptedConsole()


@pytest.fixture()
def fake_routes() -> FakeRouteFactory:
    return FakeRouteFactory()


@pytest.fixture()
def engine(console, fake_routes) -> InterceptionEngine:
    return InterceptionEngine(
        RouteTable(fake_routes),
        console=console,
        resolver=literal_resolver,
        poll_interval=0.01,
    )


@pytest.fixture()
def backend_ep() -> EndPoint:
    return EndPoint.from_ip("127.0.0.1", 9000)


def make_record(record_type: RecordType, payload: bytes, version: bytes = b"\x03\x03") -> Record:
    return Record(record_type, version, payload, remote=("127.0.0.1", 50000))
