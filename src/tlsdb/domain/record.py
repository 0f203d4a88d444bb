"""Record: one framed unit of the observed protocol.

Wire layout:
    1 byte:  record type (0x14..0x18)
    2 bytes: version (opaque)
    2 bytes: payload length (big-endian uint16)
    N bytes: payload
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from tlsdb.domain.types import MAX_PAYLOAD_SIZE, VERSION_SIZE, PeerAddress

_HEADER = struct.Struct("!B2sH")


class RecordType(IntEnum):
    CHANGE_CIPHER_SPEC = 0x14
    ALERT = 0x15
    HANDSHAKE = 0x16
    APPLICATION_DATA = 0x17
    HEARTBEAT = 0x18

    @classmethod
    def is_valid(cls, value: int) -> bool:
        """True if value lies in the enumerated range."""
        return cls.CHANGE_CIPHER_SPEC <= value <= cls.HEARTBEAT


@dataclass(frozen=True, slots=True)
class Record:
    """A decoded record.

    The length is always derived from the payload, so a record can never
    carry a stale length field.
    """
    record_type: RecordType
    version: bytes
    payload: bytes
    remote: PeerAddress | None = None

    def __post_init__(self) -> None:
        if not RecordType.is_valid(self.record_type):
            raise ValueError(f"Invalid record type {self.record_type!r}")
        if len(self.version) != VERSION_SIZE:
            raise ValueError(
                f"Version must be {VERSION_SIZE} bytes, got {len(self.version)}"
            )
        if len(self.payload) > MAX_PAYLOAD_SIZE:
            raise ValueError(
                f"Payload of {len(self.payload)} bytes exceeds {MAX_PAYLOAD_SIZE}"
            )
        # Normalize so equality works for bytearray/memoryview inputs too
        object.__setattr__(self, "record_type", RecordType(self.record_type))
        object.__setattr__(self, "version", bytes(self.version))
        object.__setattr__(self, "payload", bytes(self.payload))

    @property
    def length(self) -> int:
        return len(self.payload)

    def to_bytes(self) -> bytes:
        """Serialize to wire format: 5-byte header + payload."""
        return _HEADER.pack(self.record_type, self.version, self.length) + self.payload

    def describe(self) -> str:
        """One-line summary shown to the operator when a breakpoint hits."""
        remote = f"{self.remote[0]}:{self.remote[1]}" if self.remote else "<unknown>"
        return (
            f"Receive a new block from {remote}, "
            f"Type: {self.record_type.name}, Length: {self.length}"
        )


def unpack_header(header: bytes) -> tuple[int, bytes, int]:
    """Split a 5-byte header into (type byte, version, declared length)."""
    return _HEADER.unpack(header)
