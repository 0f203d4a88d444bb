"""Interception: record codec, proxy server, engine and operator session.

The server decodes inbound records onto a bounded queue; the engine
pulls them off, auto-forwards the ones that are not breakpoints and
pauses on the rest so the operator can decide what happens.
"""
from tlsdb.interceptor.console import OperatorConsole
from tlsdb.interceptor.engine import InterceptionEngine
from tlsdb.interceptor.interrupts import InterruptLatch
from tlsdb.interceptor.protocol import read_record, recv_exactly, write_record
from tlsdb.interceptor.server import ProxyServer
from tlsdb.interceptor.session import Outcome, SessionContext, handle_command

__all__ = [
    "OperatorConsole",
    "InterceptionEngine",
    "InterruptLatch",
    "read_record",
    "recv_exactly",
    "write_record",
    "ProxyServer",
    "Outcome",
    "SessionContext",
    "handle_command",
]
