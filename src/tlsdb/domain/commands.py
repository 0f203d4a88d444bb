"""Operator commands and the line tokenizer that builds them.

One command per line, space-separated tokens, first token a single letter:

    b <type>        toggle a breakpoint on a record type (23 or 0x17)
    a <ip> <port>   add a route
    r <ip> <port>   remove a route
    l               list routes
    s <ip> <port>   set the default route
    f               forward the current record to the default route
    d               drop the current record
    c               continue without forwarding
    q               quit
    h               show help
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from tlsdb.errors import CommandSyntaxError


class CommandType(Enum):
    BREAK = auto()
    ADD_ROUTE = auto()
    REMOVE_ROUTE = auto()
    LIST_ROUTES = auto()
    SET_DEFAULT = auto()
    FORWARD = auto()
    DROP = auto()
    CONTINUE = auto()
    QUIT = auto()
    HELP = auto()


_KEYWORDS: dict[str, CommandType] = {
    "b": CommandType.BREAK,
    "a": CommandType.ADD_ROUTE,
    "r": CommandType.REMOVE_ROUTE,
    "l": CommandType.LIST_ROUTES,
    "s": CommandType.SET_DEFAULT,
    "f": CommandType.FORWARD,
    "d": CommandType.DROP,
    "c": CommandType.CONTINUE,
    "q": CommandType.QUIT,
    "h": CommandType.HELP,
}

ARITY: dict[CommandType, int] = {
    CommandType.BREAK: 1,
    CommandType.ADD_ROUTE: 2,
    CommandType.REMOVE_ROUTE: 2,
    CommandType.SET_DEFAULT: 2,
}

HELP_TEXT = """\
Commands
- b <contentType> break on a record type, or break again to delete the breakpoint. e.g. 23 for Application Data
- a <ip> <port> add a route. e.g. a 127.0.0.1 1589
- r <ip> <port> remove a route. e.g. r 127.0.0.1 1589
- l list all routes
- s <ip> <port> set the default route. e.g. s 127.0.0.1 1589
- f forward the record to the default route.
- d drop the current record. Note: you must drop or forward the record.
- c continue without forwarding.
- q quit the program
- h show this help"""


@dataclass(frozen=True, slots=True)
class Command:
    type: CommandType
    args: tuple[str, ...] = ()


def parse_command(line: str) -> Command:
    """Tokenize one operator line into a Command.

    Raises:
        CommandSyntaxError: empty line, unknown keyword, or wrong arity
    """
    tokens = line.split()
    if not tokens:
        raise CommandSyntaxError(line)
    cmd_type = _KEYWORDS.get(tokens[0])
    if cmd_type is None:
        raise CommandSyntaxError(line)
    args = tuple(tokens[1:])
    if len(args) != ARITY.get(cmd_type, 0):
        raise CommandSyntaxError(line)
    return Command(cmd_type, args)
