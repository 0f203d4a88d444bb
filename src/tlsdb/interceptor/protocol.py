"""Record codec: framing on top of any socket-like byte stream.

Message format:
    1 byte:  record type, 0x14..0x18
    2 bytes: version
    2 bytes: payload length (big-endian uint16)
    N bytes: payload

Reads are exact: a stream may hand back fewer bytes than asked for, so
both the header and the payload are collected by a loop of bounded
recv() calls that only ends when every byte has arrived or the stream
fails. A bad type byte is detected after the 5 header bytes, before any
payload is consumed.
"""
from __future__ import annotations

import logging

from tlsdb.config import LARGE_RECORD_THRESHOLD, READ_CHUNK_SIZE
from tlsdb.domain.record import Record, RecordType, unpack_header
from tlsdb.domain.types import HEADER_SIZE, ByteSink, ByteStream, PeerAddress
from tlsdb.errors import MalformedHeader

log = logging.getLogger(__name__)


def recv_exactly(
    stream: ByteStream, n: int, chunk_size: int = READ_CHUNK_SIZE
) -> bytes:
    """Read exactly n bytes, at most chunk_size per recv().

    Short reads advance the offset and retry.

    Raises:
        ConnectionError: if the stream reaches EOF with bytes still expected
        OSError: whatever the underlying recv() raises
    """
    buf = bytearray(n)
    view = memoryview(buf)
    consumed = 0
    while consumed < n:
        want = min(chunk_size, n - consumed)
        chunk = stream.recv(want)
        if not chunk:
            raise ConnectionError(
                f"Stream closed with {n - consumed} of {n} bytes still expected"
            )
        view[consumed:consumed + len(chunk)] = chunk
        consumed += len(chunk)
    return bytes(buf)


def read_record(
    stream: ByteStream,
    remote: PeerAddress | None = None,
    chunk_size: int = READ_CHUNK_SIZE,
    large_record_threshold: int = LARGE_RECORD_THRESHOLD,
) -> Record:
    """Decode one record from the stream.

    Steps:
        1. Read exactly 5 header bytes
        2. Reject a type byte outside 0x14..0x18 (nothing else consumed)
        3. Read exactly `length` payload bytes in bounded chunks

    Raises:
        MalformedHeader: unknown type byte; the caller must close the stream
        ConnectionError / OSError: the stream failed mid-record
    """
    header = recv_exactly(stream, HEADER_SIZE, chunk_size)
    type_byte, version, length = unpack_header(header)
    if not RecordType.is_valid(type_byte):
        raise MalformedHeader(type_byte)
    if length > large_record_threshold:
        log.info("Long record found: %d bytes", length)
    payload = recv_exactly(stream, length, chunk_size) if length else b""
    return Record(
        record_type=RecordType(type_byte),
        version=version,
        payload=payload,
        remote=remote,
    )


def write_record(sink: ByteSink, record: Record) -> None:
    """Encode a record and hand the whole frame to sendall()."""
    sink.sendall(record.to_bytes())
