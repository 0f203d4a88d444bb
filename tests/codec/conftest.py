"""Shared helpers for codec tests.

ChunkedStream stands in for a socket that hands back at most a few bytes
per recv(), which is how TCP is allowed to behave.
"""
from __future__ import annotations

import pytest

from tlsdb.domain.record import Record, RecordType


class ChunkedStream:
    """In-memory socket double that caps every recv() at max_chunk bytes."""

    def __init__(self, data: bytes, max_chunk: int | None = None) -> None:
        self._data = data
        self._pos = 0
        self._max_chunk = max_chunk
        self.recv_calls: list[int] = []

    @property
    def consumed(self) -> int:
        return self._pos

    def recv(self, bufsize: int) -> bytes:
        self.recv_calls.append(bufsize)
        n = bufsize if self._max_chunk is None else min(bufsize, self._max_chunk)
        chunk = self._data[self._pos:self._pos + n]
        self._pos += len(chunk)
        return chunk


class FailingStream:
    """Delivers some bytes, then raises like a reset socket."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._sent = False

    def recv(self, bufsize: int) -> bytes:
        if self._sent:
            raise ConnectionResetError("reset by peer")
        self._sent = True
        return self._data[:bufsize]


class SinkStream:
    def __init__(self) -> None:
        self.data = bytearray()

    def sendall(self, data: bytes) -> None:
        self.data.extend(data)


@pytest.fixture()
def handshake_record() -> Record:
    return Record(
        record_type=RecordType.HANDSHAKE,
        version=b"\x03\x03",
        payload=bytes(range(10)),
    )
