"""Paused-session command handling.

Each operator command maps to one handler. Handlers get everything they
touch through a SessionContext (route table, breakpoint set, console,
current record) and return an Outcome telling the engine whether to keep
prompting, resume the event loop, or quit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

from tlsdb.domain.commands import HELP_TEXT, Command, CommandType
from tlsdb.domain.endpoint import EndPoint, Resolver, parse_endpoint
from tlsdb.domain.record import Record, RecordType
from tlsdb.errors import BadArguments, NoDefaultRoute, NoRecord
from tlsdb.interceptor.console import OperatorConsole
from tlsdb.routing.route_table import RouteTable

log = logging.getLogger(__name__)


class Outcome(Enum):
    STAY = auto()       # keep the pause, prompt again
    FORWARDED = auto()  # record written to the default route, leave the pause
    RESUME = auto()     # leave the pause without forwarding
    QUIT = auto()       # stop the engine


@dataclass(slots=True)
class SessionContext:
    """State a paused session may read or mutate."""
    routes: RouteTable
    breakpoints: set[RecordType]
    console: OperatorConsole
    record: Record | None = None
    resolver: Resolver | None = None


def parse_type_byte(text: str) -> RecordType:
    """Accept decimal (23) or hex (0x17) and return the record type.

    Raises:
        BadArguments: not a number, or not one of the record types
    """
    try:
        value = int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError:
        raise BadArguments(f"Invalid record type {text!r}") from None
    if not RecordType.is_valid(value):
        raise BadArguments(
            f"Record type {value} is outside "
            f"{int(RecordType.CHANGE_CIPHER_SPEC)}..{int(RecordType.HEARTBEAT)}"
        )
    return RecordType(value)


def _endpoint(cmd: Command, ctx: SessionContext) -> EndPoint:
    host, port = cmd.args
    return parse_endpoint(host, port, ctx.resolver)


def _toggle_breakpoint(cmd: Command, ctx: SessionContext) -> Outcome:
    record_type = parse_type_byte(cmd.args[0])
    if record_type in ctx.breakpoints:
        ctx.breakpoints.discard(record_type)
        ctx.console.write(f"Breakpoint on {record_type.name} removed")
    else:
        ctx.breakpoints.add(record_type)
        ctx.console.write(f"Breakpoint on {record_type.name} added")
    return Outcome.STAY


def _add_route(cmd: Command, ctx: SessionContext) -> Outcome:
    ctx.routes.add(_endpoint(cmd, ctx))
    ctx.console.write("Route added")
    return Outcome.STAY


def _remove_route(cmd: Command, ctx: SessionContext) -> Outcome:
    ctx.routes.remove(_endpoint(cmd, ctx))
    ctx.console.write("Route removed")
    return Outcome.STAY


def _list_routes(cmd: Command, ctx: SessionContext) -> Outcome:
    entries = ctx.routes.list()
    if not entries:
        ctx.console.write("No routes.")
    for endpoint, is_default in entries:
        suffix = " <== default" if is_default else ""
        ctx.console.write(f"{endpoint}{suffix}")
    return Outcome.STAY


def _set_default(cmd: Command, ctx: SessionContext) -> Outcome:
    ctx.routes.set_default(_endpoint(cmd, ctx))
    ctx.console.write("Default route set")
    return Outcome.STAY


def forward_record(record: Record, routes: RouteTable) -> None:
    """Write a record to the default route.

    Raises:
        NoDefaultRoute: there is no default route
        RouteError: the default route is closed or unreachable
    """
    route = routes.default_route()
    if route is None:
        raise NoDefaultRoute()
    route.sendall(record.to_bytes())


def _forward(cmd: Command, ctx: SessionContext) -> Outcome:
    if ctx.record is None:
        raise NoRecord()
    forward_record(ctx.record, ctx.routes)
    log.debug(
        "Forwarded %s record (%d bytes)", ctx.record.record_type.name, ctx.record.length
    )
    ctx.record = None
    return Outcome.FORWARDED


def _drop(cmd: Command, ctx: SessionContext) -> Outcome:
    if ctx.record is not None:
        log.debug("Dropped %s record", ctx.record.record_type.name)
    ctx.record = None
    return Outcome.RESUME


def _continue(cmd: Command, ctx: SessionContext) -> Outcome:
    return Outcome.RESUME


def _quit(cmd: Command, ctx: SessionContext) -> Outcome:
    return Outcome.QUIT


def _help(cmd: Command, ctx: SessionContext) -> Outcome:
    ctx.console.write(HELP_TEXT)
    return Outcome.STAY


_HANDLERS: dict[CommandType, Callable[[Command, SessionContext], Outcome]] = {
    CommandType.BREAK: _toggle_breakpoint,
    CommandType.ADD_ROUTE: _add_route,
    CommandType.REMOVE_ROUTE: _remove_route,
    CommandType.LIST_ROUTES: _list_routes,
    CommandType.SET_DEFAULT: _set_default,
    CommandType.FORWARD: _forward,
    CommandType.DROP: _drop,
    CommandType.CONTINUE: _continue,
    CommandType.QUIT: _quit,
    CommandType.HELP: _help,
}


def handle_command(cmd: Command, ctx: SessionContext) -> Outcome:
    """Run one command against the session context.

    Errors propagate to the caller, which reports them and stays paused.
    """
    return _HANDLERS[cmd.type](cmd, ctx)
