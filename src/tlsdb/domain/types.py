"""Shared type aliases and wire constants used across the domain."""
from __future__ import annotations

from typing import Protocol, TypeAlias

PeerAddress: TypeAlias = tuple[str, int]  # (host, port) as reported by a socket
TypeByte: TypeAlias = int

HEADER_SIZE = 5           # type (1) + version (2) + length (2)
VERSION_SIZE = 2
MAX_PAYLOAD_SIZE = 0xFFFF  # length is a big-endian uint16


class ByteStream(Protocol):
    """Anything socket-like that the codec can read from."""

    def recv(self, bufsize: int) -> bytes: ...


class ByteSink(Protocol):
    """Anything socket-like that the codec can write to."""

    def sendall(self, data: bytes) -> object: ...
