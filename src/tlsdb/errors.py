"""Exception hierarchy for tlsdb.

Three families:

Protocol errors (connection is closed, process continues):
    - ProtocolError, MalformedHeader

Route errors (a managed backend connection can no longer be used):
    - RouteClosedError: the route was closed by the operator
    - RouteUnavailableError: dialing exhausted its attempt budget

Command errors (operator-facing, printed and the prompt is re-issued):
    - CommandSyntaxError, BadArguments, RouteNotFound, NoRecord,
      NoDefaultRoute, DNSResolutionError

Plain socket failures are left as the builtin OSError / ConnectionError.
"""
from __future__ import annotations

__all__ = [
    "BadArguments",
    "CommandError",
    "CommandSyntaxError",
    "DNSResolutionError",
    "MalformedHeader",
    "NoDefaultRoute",
    "NoRecord",
    "ProtocolError",
    "RouteClosedError",
    "RouteError",
    "RouteNotFound",
    "RouteUnavailableError",
    "TlsdbError",
]


class TlsdbError(Exception):
    """Base class for every error raised by tlsdb itself."""


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

class ProtocolError(TlsdbError):
    """The peer sent bytes that do not follow the record framing."""


class MalformedHeader(ProtocolError):
    """Record header carries a type byte outside 0x14..0x18."""

    def __init__(self, type_byte: int) -> None:
        self.type_byte = type_byte
        super().__init__(
            f"Unknown record type {type_byte:#04x}, closing the connection"
        )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

class RouteError(TlsdbError, ConnectionError):
    """A reliable route cannot carry traffic any more."""


class RouteClosedError(RouteError):
    """The route was closed and will not reconnect."""


class RouteUnavailableError(RouteError):
    """Every dial attempt failed; the route gave up."""


# ---------------------------------------------------------------------------
# Operator commands
# ---------------------------------------------------------------------------

class CommandError(TlsdbError):
    """Recoverable error reported back to the operator."""


class CommandSyntaxError(CommandError):
    def __init__(self, line: str = "") -> None:
        self.line = line
        super().__init__("Wrong syntax!")


class BadArguments(CommandError):
    pass


class RouteNotFound(CommandError):
    def __init__(self, endpoint: object) -> None:
        self.endpoint = endpoint
        super().__init__(f"No such route: {endpoint}")


class NoRecord(CommandError):
    def __init__(self) -> None:
        super().__init__("No record")


class NoDefaultRoute(CommandError):
    def __init__(self) -> None:
        super().__init__("No default route")


class DNSResolutionError(CommandError):
    def __init__(self, host: str, reason: str = "IP not found.") -> None:
        self.host = host
        super().__init__(f"Cannot resolve {host!r}: {reason}")
