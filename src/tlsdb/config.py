"""Runtime configuration for the proxy.

All knobs live in one frozen dataclass so the CLI, the server and the
tests build the same object. Defaults mirror the behavior of the
interactive tool: listen on 0.0.0.0:1589, break on application data.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from tlsdb.domain.record import RecordType

DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_LISTEN_PORT = 1589
DEFAULT_QUEUE_SIZE = 1024
READ_CHUNK_SIZE = 512
LARGE_RECORD_THRESHOLD = 1000
MAX_DIAL_ATTEMPTS = 5
MAX_ACCEPT_FAILURES = 5


def _default_breakpoints() -> frozenset[RecordType]:
    return frozenset({RecordType.APPLICATION_DATA})


@dataclass(frozen=True, slots=True)
class ProxyConfig:
    """Everything the server, routes and engine need at startup.

    Args:
        listen_host / listen_port: inbound listener (port 0 = OS picks).
        record_queue_size: inbound record queue capacity.
        reply_queue_size: backend -> client byte queue capacity.
        read_chunk_size: upper bound on a single payload recv().
        large_record_threshold: declared lengths above this are logged.
        max_dial_attempts: connect attempts before a route gives up.
        dial_retry_delay: seconds between failed connect attempts.
        max_accept_failures: consecutive accept() failures before the
            acceptor stops for good.
        poll_interval: how often idle loops re-check their stop flag.
        breakpoints: record types that pause the engine at startup.
    """
    listen_host: str = DEFAULT_LISTEN_HOST
    listen_port: int = DEFAULT_LISTEN_PORT
    record_queue_size: int = DEFAULT_QUEUE_SIZE
    reply_queue_size: int = DEFAULT_QUEUE_SIZE
    read_chunk_size: int = READ_CHUNK_SIZE
    large_record_threshold: int = LARGE_RECORD_THRESHOLD
    max_dial_attempts: int = MAX_DIAL_ATTEMPTS
    dial_retry_delay: float = 0.0
    max_accept_failures: int = MAX_ACCEPT_FAILURES
    poll_interval: float = 0.1
    breakpoints: frozenset[RecordType] = field(default_factory=_default_breakpoints)

    def __post_init__(self) -> None:
        if self.max_dial_attempts < 1:
            raise ValueError("max_dial_attempts must be >= 1")
        if self.read_chunk_size < 1:
            raise ValueError("read_chunk_size must be >= 1")
        if self.record_queue_size < 1 or self.reply_queue_size < 1:
            raise ValueError("queue sizes must be >= 1")

    @property
    def listen_address(self) -> tuple[str, int]:
        return (self.listen_host, self.listen_port)


def parse_address(text: str) -> tuple[str, int]:
    """Split "host:port" into (host, port). Raises ValueError."""
    host, sep, port = text.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Expected HOST:PORT, got {text!r}")
    port_number = int(port)
    if not 0 <= port_number <= 0xFFFF:
        raise ValueError(f"Port {port_number} out of range")
    return host, port_number
