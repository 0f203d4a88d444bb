"""tlsdb CLI entry point.

Usage: tlsdb [--addr HOST:PORT] [--break TYPE ...] [--route HOST:PORT ...]
"""
import argparse
import logging
import sys

from tlsdb.config import DEFAULT_QUEUE_SIZE, MAX_DIAL_ATTEMPTS, ProxyConfig, parse_address
from tlsdb.domain.commands import HELP_TEXT
from tlsdb.domain.endpoint import parse_endpoint
from tlsdb.errors import TlsdbError
from tlsdb.interceptor.console import OperatorConsole
from tlsdb.interceptor.engine import InterceptionEngine
from tlsdb.interceptor.server import ProxyServer
from tlsdb.interceptor.session import parse_type_byte
from tlsdb.routing.reliable_route import ReliableRoute
from tlsdb.routing.route_table import RouteTable

log = logging.getLogger("tlsdb")

_LOG_FORMAT = "%(asctime)s %(filename)s:%(lineno)d: %(message)s"


def _address(text: str) -> tuple[str, int]:
    try:
        return parse_address(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _record_type(text: str):
    try:
        return parse_type_byte(text)
    except TlsdbError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tlsdb",
        description="tlsdb - an interactive TLS protocol debugger.",
    )
    parser.add_argument(
        "--addr", type=_address, default=("0.0.0.0", 1589),
        help="The listening address (default: 0.0.0.0:1589)",
    )
    parser.add_argument(
        "--break", dest="breakpoints", type=_record_type, action="append",
        metavar="TYPE",
        help="Record type to break on, repeatable (default: 23, Application Data)",
    )
    parser.add_argument(
        "--route", dest="routes", type=_address, action="append", default=[],
        metavar="HOST:PORT",
        help="Backend route to add at startup, repeatable; the first is the default",
    )
    parser.add_argument(
        "--queue-size", type=int, default=DEFAULT_QUEUE_SIZE,
        help=f"Capacity of the record and reply queues (default: {DEFAULT_QUEUE_SIZE})",
    )
    parser.add_argument(
        "--max-dial-attempts", type=int, default=MAX_DIAL_ATTEMPTS,
        help=f"Connect attempts before a route gives up (default: {MAX_DIAL_ATTEMPTS})",
    )
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ProxyConfig:
    host, port = args.addr
    kwargs = dict(
        listen_host=host,
        listen_port=port,
        record_queue_size=args.queue_size,
        reply_queue_size=args.queue_size,
        max_dial_attempts=args.max_dial_attempts,
    )
    if args.breakpoints:
        kwargs["breakpoints"] = frozenset(args.breakpoints)
    return ProxyConfig(**kwargs)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format=_LOG_FORMAT, stream=sys.stdout)

    try:
        config = config_from_args(args)
    except ValueError as exc:
        print(f"tlsdb: {exc}", file=sys.stderr)
        sys.exit(2)

    routes = RouteTable(
        lambda ep: ReliableRoute.open(
            ep,
            max_dial_attempts=config.max_dial_attempts,
            dial_retry_delay=config.dial_retry_delay,
        )
    )
    for host, port in args.routes:
        try:
            routes.add(parse_endpoint(host, str(port)))
        except TlsdbError as exc:
            log.error("Cannot add route %s:%d: %s", host, port, exc)

    print(f"Starting tlsdb on {config.listen_host}:{config.listen_port}...")
    server = ProxyServer(routes, config)
    try:
        server.start()
    except OSError as exc:
        print(f"tlsdb: cannot listen on {config.listen_host}:{config.listen_port}: {exc}",
              file=sys.stderr)
        sys.exit(1)
    print(HELP_TEXT)

    engine = InterceptionEngine(
        routes,
        records=server.records,
        console=OperatorConsole(),
        breakpoints=config.breakpoints,
        poll_interval=config.poll_interval,
    )
    try:
        engine.run()
    except KeyboardInterrupt:
        # second Ctrl-C while paused
        print()
    finally:
        routes.close_all()
        server.stop()
    sys.exit(0)
