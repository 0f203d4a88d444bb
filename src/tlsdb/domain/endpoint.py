"""EndPoint: IPv4 address + port, the unique key of a route."""
from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Callable

from tlsdb.errors import BadArguments, DNSResolutionError

Resolver = Callable[[str], str]


@dataclass(frozen=True, slots=True)
class EndPoint:
    """Value type compared and hashed by (ip, port)."""
    ip: bytes
    port: int

    def __post_init__(self) -> None:
        if len(self.ip) != 4:
            raise ValueError(f"IPv4 address must be 4 bytes, got {len(self.ip)}")
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"Port {self.port} out of range")
        object.__setattr__(self, "ip", bytes(self.ip))

    @classmethod
    def from_ip(cls, ip: str, port: int) -> EndPoint:
        """Build from dotted-quad text without any DNS lookup."""
        return cls(socket.inet_aton(ip), port)

    @property
    def host(self) -> str:
        return socket.inet_ntoa(self.ip)

    @property
    def address(self) -> tuple[str, int]:
        """(host, port) tuple suitable for socket.create_connection."""
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.host} {self.port}"


def _gethostbyname(host: str) -> str:
    try:
        return socket.gethostbyname(host)
    except (socket.gaierror, UnicodeError) as exc:
        raise DNSResolutionError(host, str(exc)) from exc


def parse_endpoint(
    host: str, port: str, resolver: Resolver | None = None
) -> EndPoint:
    """Resolve operator text (host, port) into an EndPoint.

    Raises:
        DNSResolutionError: host does not resolve to an IPv4 address
        BadArguments: port is not an integer in 0..65535
    """
    try:
        port_number = int(port)
    except ValueError:
        raise BadArguments(f"Invalid port {port!r}") from None
    if not 0 <= port_number <= 0xFFFF:
        raise BadArguments(f"Port {port_number} out of range")

    ip = (resolver or _gethostbyname)(host)
    if not ip:
        raise DNSResolutionError(host)
    try:
        return EndPoint.from_ip(ip, port_number)
    except OSError as exc:
        raise DNSResolutionError(host, str(exc)) from exc
