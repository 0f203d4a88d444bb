"""Interception engine: the single control loop of the debugger.

Two event sources feed the loop:
    - a bounded queue of decoded inbound records (one producer per
      inbound connection, so per-connection FIFO order is preserved)
    - an interrupt latch set by SIGINT (or interrupt() from code)

A record whose type is not a breakpoint is forwarded to the default
route straight away, or dropped if there is none. A breakpoint record,
or an interrupt, pauses the loop: the operator is prompted for commands
until one of them resumes or quits.

The route table and the breakpoint set belong to this object and are
only touched from the thread running the loop, so command handlers get
them through an explicit SessionContext instead of globals.
"""
from __future__ import annotations

import logging
import queue
from typing import Iterable

from tlsdb.config import DEFAULT_QUEUE_SIZE
from tlsdb.domain.commands import parse_command
from tlsdb.domain.endpoint import Resolver
from tlsdb.domain.record import Record, RecordType
from tlsdb.errors import NoDefaultRoute, RouteError, TlsdbError
from tlsdb.interceptor.console import OperatorConsole
from tlsdb.interceptor.interrupts import InterruptLatch
from tlsdb.interceptor.session import (
    Outcome,
    SessionContext,
    forward_record,
    handle_command,
)
from tlsdb.routing.route_table import RouteTable

log = logging.getLogger(__name__)


class InterceptionEngine:
    """Breakpoint-driven record dispatcher with an interactive pause.

    Args:
        routes: route table (owned by the engine from now on)
        records: inbound record queue; a bounded one is created if None
        console: operator I/O (stdin/stdout by default)
        breakpoints: record types that pause; {APPLICATION_DATA} if None
        interrupts: SIGINT latch
        resolver: host -> dotted-quad lookup for route commands
        poll_interval: seconds between interrupt checks while idle
    """

    def __init__(
        self,
        routes: RouteTable,
        records: queue.Queue[Record] | None = None,
        console: OperatorConsole | None = None,
        breakpoints: Iterable[RecordType] | None = None,
        interrupts: InterruptLatch | None = None,
        resolver: Resolver | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self._routes = routes
        self._records: queue.Queue[Record] = (
            records if records is not None else queue.Queue(maxsize=DEFAULT_QUEUE_SIZE)
        )
        self._console = console or OperatorConsole()
        self._breakpoints: set[RecordType] = (
            set(breakpoints) if breakpoints is not None else {RecordType.APPLICATION_DATA}
        )
        self._interrupts = interrupts or InterruptLatch()
        self._resolver = resolver
        self._poll_interval = poll_interval
        self._running = False
        self._quit_requested = False
        self._paused = False
        self._arm_signals = False
        self._forwarded = 0
        self._dropped = 0

    # -- properties -------------------------------------------------------

    @property
    def routes(self) -> RouteTable:
        return self._routes

    @property
    def records(self) -> queue.Queue[Record]:
        return self._records

    @property
    def breakpoints(self) -> set[RecordType]:
        return self._breakpoints

    @property
    def running(self) -> bool:
        return self._running

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def quit_requested(self) -> bool:
        return self._quit_requested

    @property
    def forwarded(self) -> int:
        """Records written to a route (automatically or by the operator)."""
        return self._forwarded

    @property
    def dropped(self) -> int:
        """Records discarded (no default route, route failure, or operator)."""
        return self._dropped

    # -- loop -------------------------------------------------------------

    def run(self, arm_signals: bool = True) -> None:
        """Process events until the operator quits or stop() is called.

        arm_signals registers the SIGINT latch; that requires the main
        thread, so tests running the loop elsewhere pass False and use
        interrupt() instead.
        """
        self._running = True
        self._arm_signals = arm_signals
        if arm_signals:
            self._interrupts.arm()
        try:
            while self._running:
                if self._interrupts.consume():
                    self.handle_interrupt()
                    continue
                try:
                    record = self._records.get(timeout=self._poll_interval)
                except queue.Empty:
                    continue
                self.handle_record(record)
        finally:
            self._running = False
            if arm_signals:
                self._interrupts.disarm()
        log.info("Interception engine stopped")

    def stop(self) -> None:
        """Ask the loop to exit after the current event."""
        self._running = False

    def interrupt(self) -> None:
        """Request a pause as if SIGINT had been delivered."""
        self._interrupts.trigger()

    # -- events -----------------------------------------------------------

    def handle_record(self, record: Record) -> None:
        """Auto-forward, or pause if the record type is a breakpoint."""
        if record.record_type not in self._breakpoints:
            self._auto_forward(record)
            return
        self._console.write(record.describe())
        self._pause(record)

    def handle_interrupt(self) -> None:
        """Pause with no pending record, then re-arm the latch."""
        self._console.write("Receive SIGINT.")
        self._pause(None)
        if self._arm_signals and self._running:
            self._interrupts.arm()

    def _auto_forward(self, record: Record) -> None:
        try:
            forward_record(record, self._routes)
        except NoDefaultRoute:
            log.debug("No default route, dropping %s record", record.record_type.name)
            self._dropped += 1
            return
        except RouteError as exc:
            log.warning("Dropping %s record: %s", record.record_type.name, exc)
            self._dropped += 1
            return
        self._forwarded += 1

    def _pause(self, record: Record | None) -> None:
        ctx = SessionContext(
            routes=self._routes,
            breakpoints=self._breakpoints,
            console=self._console,
            record=record,
            resolver=self._resolver,
        )
        self._paused = True
        try:
            while True:
                line = self._console.read_line()
                if line is None:
                    log.info("Operator input closed, quitting")
                    outcome = Outcome.QUIT
                else:
                    try:
                        outcome = handle_command(parse_command(line), ctx)
                    except TlsdbError as exc:
                        self._console.write(str(exc))
                        continue

                if outcome is Outcome.STAY:
                    continue
                if outcome is Outcome.FORWARDED:
                    self._forwarded += 1
                elif outcome is Outcome.QUIT:
                    self._quit_requested = True
                    self._running = False
                elif record is not None:
                    self._dropped += 1
                return
        finally:
            self._paused = False
