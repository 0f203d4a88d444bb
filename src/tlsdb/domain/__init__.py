"""Domain model for tlsdb.

Re-exports all public types for convenient access:
    from tlsdb.domain import Record, RecordType, EndPoint, Command
"""
from tlsdb.domain.commands import (
    HELP_TEXT,
    Command,
    CommandType,
    parse_command,
)
from tlsdb.domain.endpoint import EndPoint, parse_endpoint
from tlsdb.domain.record import Record, RecordType
from tlsdb.domain.types import (
    HEADER_SIZE,
    MAX_PAYLOAD_SIZE,
    ByteSink,
    ByteStream,
    PeerAddress,
)

__all__ = [
    "HELP_TEXT",
    "Command",
    "CommandType",
    "parse_command",
    "EndPoint",
    "parse_endpoint",
    "Record",
    "RecordType",
    "HEADER_SIZE",
    "MAX_PAYLOAD_SIZE",
    "ByteSink",
    "ByteStream",
    "PeerAddress",
]
