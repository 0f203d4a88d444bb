"""Self-healing outbound connection to one backend endpoint.

State machine, owned by one background thread per route:

    CONNECTING --dial ok--> READY --io error / restart()--> RESTARTING
        |                     |                                 |
        | attempts exhausted  | close()                         | close pending
        v                     v                                 v
      FAILED               CLOSED  <----------------------------+
                                           otherwise RESTARTING -> CONNECTING

Callers never touch the socket lifecycle. recv()/sendall() grab the
current socket while READY; on failure they request a restart tagged with
the connection generation they used, then block until the route is READY
again and retry. Duplicate restart requests for a socket that has
already been replaced are ignored.

Control signals travel to the background thread through a queue.Queue,
and state lives behind a threading.Condition so waiters wake on every
transition.
"""
from __future__ import annotations

import logging
import queue
import socket
import threading
import time
from enum import Enum, auto
from typing import Callable

from tlsdb.config import MAX_DIAL_ATTEMPTS
from tlsdb.domain.endpoint import EndPoint
from tlsdb.errors import RouteClosedError, RouteUnavailableError

log = logging.getLogger(__name__)

Connector = Callable[[tuple[str, int]], socket.socket]


class RouteState(Enum):
    CONNECTING = auto()
    READY = auto()
    RESTARTING = auto()
    CLOSED = auto()
    FAILED = auto()


class _Signal(Enum):
    RESTART = auto()
    CLOSE = auto()


_TERMINAL = frozenset({RouteState.CLOSED, RouteState.FAILED})


class ReliableRoute:
    """Outbound connection that reconnects itself after I/O failures.

    Socket-like surface: recv(n) and sendall(data) block until they succeed
    on some connection, or raise once the route is closed or has failed.

    Args:
        endpoint: backend to dial.
        max_dial_attempts: connect attempts per (re)connect cycle.
        dial_retry_delay: pause between failed attempts (0 = no backoff).
        connector: dial function, socket.create_connection by default.
    """

    def __init__(
        self,
        endpoint: EndPoint,
        max_dial_attempts: int = MAX_DIAL_ATTEMPTS,
        dial_retry_delay: float = 0.0,
        connector: Connector | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._max_dial_attempts = max_dial_attempts
        self._dial_retry_delay = dial_retry_delay
        self._connector = connector or socket.create_connection
        self._signals: queue.Queue[_Signal] = queue.Queue()
        self._cond = threading.Condition()
        self._state = RouteState.CONNECTING
        self._sock: socket.socket | None = None
        self._generation = 0
        self._close_requested = False
        self._thread: threading.Thread | None = None

    @classmethod
    def open(cls, endpoint: EndPoint, **kwargs) -> ReliableRoute:
        """Start the route and block until its first connection is READY.

        Raises:
            RouteUnavailableError: every dial attempt failed
            RouteClosedError: closed before it ever became ready
        """
        route = cls(endpoint, **kwargs)
        route.start()
        route.wait_ready()
        return route

    # -- properties -------------------------------------------------------

    @property
    def endpoint(self) -> EndPoint:
        return self._endpoint

    @property
    def state(self) -> RouteState:
        with self._cond:
            return self._state

    @property
    def generation(self) -> int:
        """Number of successful dials so far."""
        with self._cond:
            return self._generation

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        """Launch the background connect/retry thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, daemon=True, name=f"route-{self._endpoint}"
        )
        self._thread.start()

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until READY. Returns False if the timeout expired first.

        Raises:
            RouteClosedError / RouteUnavailableError: the route is terminal
        """
        with self._cond:
            if not self._cond.wait_for(
                lambda: self._state is RouteState.READY or self._state in _TERMINAL,
                timeout=timeout,
            ):
                return False
            self._raise_if_terminal()
            return True

    def close(self) -> None:
        """Ask the route to close. Idempotent, never blocks on the socket."""
        with self._cond:
            if self._close_requested or self._state in _TERMINAL:
                return
            self._close_requested = True
            if self._thread is None:
                # Never started: nothing to tear down
                self._state = RouteState.CLOSED
                self._cond.notify_all()
                return
        self._signals.put(_Signal.CLOSE)

    def restart(self) -> None:
        """Drop the current connection and dial again."""
        with self._cond:
            generation = self._generation
        self._request_restart(generation)

    def join(self, timeout: float | None = None) -> None:
        """Wait for the background thread to finish (after close/failure)."""
        if self._thread is not None:
            self._thread.join(timeout)

    # -- socket-like I/O --------------------------------------------------

    def recv(self, bufsize: int) -> bytes:
        """Read up to bufsize bytes, reconnecting as often as needed.

        EOF from the backend counts as a failure: the route redials and
        keeps reading from the new connection.
        """
        while True:
            sock, generation = self._acquire()
            try:
                data = sock.recv(bufsize)
            except OSError as exc:
                log.debug("Read from %s failed: %s", self._endpoint, exc)
                self._request_restart(generation)
                continue
            if not data:
                log.debug("Backend %s closed the connection", self._endpoint)
                self._request_restart(generation)
                continue
            return data

    def sendall(self, data: bytes) -> int:
        """Write all of data, retrying on a fresh connection after failures."""
        while True:
            sock, generation = self._acquire()
            try:
                sock.sendall(data)
            except OSError as exc:
                log.debug("Write to %s failed: %s", self._endpoint, exc)
                self._request_restart(generation)
                continue
            return len(data)

    # -- internals --------------------------------------------------------

    def _raise_if_terminal(self) -> None:
        if self._state is RouteState.CLOSED:
            raise RouteClosedError(f"Route {self._endpoint} is closed")
        if self._state is RouteState.FAILED:
            raise RouteUnavailableError(
                f"Route {self._endpoint} failed after "
                f"{self._max_dial_attempts} dial attempts"
            )

    def _acquire(self) -> tuple[socket.socket, int]:
        """Wait for READY and return (socket, generation)."""
        with self._cond:
            self._cond.wait_for(
                lambda: self._state is RouteState.READY or self._state in _TERMINAL
            )
            self._raise_if_terminal()
            assert self._sock is not None
            return self._sock, self._generation

    def _request_restart(self, generation: int) -> None:
        with self._cond:
            if self._state is not RouteState.READY or generation != self._generation:
                return  # already restarting, or that socket is long gone
            self._state = RouteState.RESTARTING
            self._cond.notify_all()
        self._signals.put(_Signal.RESTART)

    def _set_state(self, state: RouteState) -> None:
        with self._cond:
            self._state = state
            self._cond.notify_all()

    def _dial(self) -> socket.socket | None:
        """Try to connect up to max_dial_attempts times."""
        for attempt in range(1, self._max_dial_attempts + 1):
            with self._cond:
                if self._close_requested:
                    return None
            try:
                sock = self._connector(self._endpoint.address)
            except OSError as exc:
                log.warning(
                    "Dial %s failed (attempt %d/%d): %s",
                    self._endpoint, attempt, self._max_dial_attempts, exc,
                )
                if self._dial_retry_delay and attempt < self._max_dial_attempts:
                    time.sleep(self._dial_retry_delay)
                continue
            sock.settimeout(None)
            return sock
        return None

    @staticmethod
    def _teardown(sock: socket.socket) -> None:
        # shutdown() first so a thread blocked in recv() wakes up
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # peer already gone
        sock.close()

    def _run(self) -> None:
        """Background state machine. Exits in CLOSED or FAILED."""
        while True:
            self._set_state(RouteState.CONNECTING)
            sock = self._dial()

            with self._cond:
                if self._close_requested:
                    self._state = RouteState.CLOSED
                    self._cond.notify_all()
                    if sock is not None:
                        self._teardown(sock)
                    log.info("Route %s closed", self._endpoint)
                    return
                if sock is None:
                    self._state = RouteState.FAILED
                    self._cond.notify_all()
                    log.error(
                        "Route %s unavailable after %d dial attempts",
                        self._endpoint, self._max_dial_attempts,
                    )
                    return
                self._sock = sock
                self._generation += 1
                self._state = RouteState.READY
                self._cond.notify_all()
            log.info("Route %s ready (connection #%d)", self._endpoint, self._generation)

            # READY until someone asks for a restart or a close
            signal = self._signals.get()

            with self._cond:
                if self._state is RouteState.READY:
                    self._state = RouteState.RESTARTING
                    self._cond.notify_all()
                old, self._sock = self._sock, None
                closing = self._close_requested or signal is _Signal.CLOSE
            if old is not None:
                self._teardown(old)
            if closing:
                self._set_state(RouteState.CLOSED)
                log.info("Route %s closed", self._endpoint)
                return
            log.info("Route %s restarting", self._endpoint)
