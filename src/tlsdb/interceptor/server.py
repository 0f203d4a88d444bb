"""Threaded proxy server: the I/O side of the debugger.

Architecture:
    Acceptor thread: serves inbound connections one at a time. For each
        connection it starts one writer thread, then runs the read loop
        itself, decoding records onto the bounded record queue until the
        connection fails. The writer is cancelled before the next accept.
    Writer thread: drains the backend -> client byte queue into the
        active connection. A reply it fails to write is kept for the
        next connection's writer.
    Relay thread: keeps one backend reader thread per route in the
        table. Each reader decodes records from its route and queues
        their encoded bytes for the client only while that route is the
        default, so a default change takes effect on the next record.

The interception engine consumes the record queue on the main thread;
nothing here decides what happens to a record.

Both queues are bounded. A full record queue stalls the read loop, which
stalls TCP on the client side; an operator who never resolves a
breakpoint throttles the pipeline without breaking it.
"""
from __future__ import annotations

import logging
import queue
import socket
import threading
import time

from tlsdb.config import ProxyConfig
from tlsdb.domain.record import Record
from tlsdb.errors import ProtocolError, RouteError
from tlsdb.interceptor.protocol import read_record
from tlsdb.routing.reliable_route import ReliableRoute
from tlsdb.routing.route_table import RouteTable

log = logging.getLogger(__name__)


class ProxyServer:
    """Listener plus the background threads that move bytes.

    Args:
        routes: route table shared with the engine (read-only here)
        config: listen address, queue sizes, failure bounds
        records: inbound record queue (created from config if None)
        replies: backend -> client byte queue (created from config if None)
    """

    def __init__(
        self,
        routes: RouteTable,
        config: ProxyConfig | None = None,
        records: queue.Queue[Record] | None = None,
        replies: queue.Queue[bytes] | None = None,
    ) -> None:
        self._routes = routes
        self._config = config or ProxyConfig()
        self._records: queue.Queue[Record] = (
            records if records is not None
            else queue.Queue(maxsize=self._config.record_queue_size)
        )
        self._replies: queue.Queue[bytes] = (
            replies if replies is not None
            else queue.Queue(maxsize=self._config.reply_queue_size)
        )
        self._server_socket: socket.socket | None = None
        self._running = False
        self._threads: list[threading.Thread] = []
        self._active_conn: socket.socket | None = None
        self._lock = threading.Lock()  # protects _active_conn, _unsent and counters
        self._unsent: bytes | None = None
        self._readers: dict[ReliableRoute, threading.Thread] = {}
        self._connections_served = 0
        self._records_received = 0
        self._ready = threading.Event()

    # -- properties -------------------------------------------------------

    @property
    def address(self) -> tuple[str, int]:
        """Return (host, port) the server is bound to.

        Useful when listen_port=0 (OS-assigned). Only valid after start().
        """
        if self._server_socket is None:
            raise RuntimeError("Server not started")
        return self._server_socket.getsockname()[:2]

    @property
    def records(self) -> queue.Queue[Record]:
        return self._records

    @property
    def replies(self) -> queue.Queue[bytes]:
        return self._replies

    @property
    def running(self) -> bool:
        return self._running

    @property
    def connections_served(self) -> int:
        with self._lock:
            return self._connections_served

    @property
    def records_received(self) -> int:
        with self._lock:
            return self._records_received

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        """Bind the listener and start the acceptor and relay threads."""
        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_socket.bind(self._config.listen_address)
        self._server_socket.listen(1)
        self._server_socket.settimeout(0.5)
        self._running = True
        for target, name in (
            (self._accept_loop, "acceptor"),
            (self._relay_loop, "backend-relay"),
        ):
            t = threading.Thread(target=target, daemon=True, name=name)
            t.start()
            self._threads.append(t)
        self._ready.set()
        log.info("Listening on %s:%d", *self.address)

    def stop(self, timeout: float = 2.0) -> None:
        """Stop accepting, drop the active connection, join threads."""
        self._running = False
        with self._lock:
            conn = self._active_conn
        if conn is not None:
            _close_quietly(conn)
        if self._server_socket is not None:
            _close_quietly(self._server_socket)
        for t in self._threads:
            t.join(timeout)
        self._threads.clear()
        # readers exit once their route is closed
        for t in self._readers.values():
            t.join(self._config.poll_interval)
        self._readers.clear()
        self._server_socket = None

    def wait_ready(self, timeout: float = 5.0) -> bool:
        """Block until the listener is bound. For test setup."""
        return self._ready.wait(timeout=timeout)

    # -- acceptor ---------------------------------------------------------

    def _accept_loop(self) -> None:
        """Serve one connection at a time.

        Uses the socket timeout (0.5s) to periodically check _running.
        Gives up after max_accept_failures consecutive accept() errors.
        """
        failures = 0
        while self._running and failures < self._config.max_accept_failures:
            try:
                conn, addr = self._server_socket.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._running:
                    break  # socket closed by stop()
                failures += 1
                log.warning(
                    "accept() failed (%d/%d): %s",
                    failures, self._config.max_accept_failures, exc,
                )
                continue
            failures = 0
            self._serve(conn, addr)
        if failures >= self._config.max_accept_failures:
            log.error("Too many accept() failures, no longer accepting clients")

    def _serve(self, conn: socket.socket, addr: tuple[str, int]) -> None:
        """Run one inbound connection to completion."""
        conn.settimeout(None)
        log.info("Client %s:%d connected", addr[0], addr[1])
        cancel = threading.Event()
        writer = threading.Thread(
            target=self._write_loop, args=(conn, cancel), daemon=True, name="client-writer"
        )
        with self._lock:
            self._active_conn = conn
            self._connections_served += 1
        writer.start()
        try:
            self._read_loop(conn, addr)
        finally:
            cancel.set()
            with self._lock:
                self._active_conn = None
            _close_quietly(conn)
            writer.join(self._config.poll_interval * 5)
            log.info("Client %s:%d disconnected", addr[0], addr[1])

    def _read_loop(self, conn: socket.socket, addr: tuple[str, int]) -> None:
        """Decode records and enqueue them until the connection fails."""
        while self._running:
            try:
                record = read_record(
                    conn,
                    remote=addr,
                    chunk_size=self._config.read_chunk_size,
                    large_record_threshold=self._config.large_record_threshold,
                )
            except ProtocolError as exc:
                log.warning("Client %s:%d: %s", addr[0], addr[1], exc)
                return
            except OSError as exc:
                log.debug("Client %s:%d read failed: %s", addr[0], addr[1], exc)
                return
            with self._lock:
                self._records_received += 1
            if not self._put(self._records, record):
                return

    def _put(self, q: queue.Queue, item) -> bool:
        """Blocking put that gives up once the server stops."""
        while self._running:
            try:
                q.put(item, timeout=self._config.poll_interval)
                return True
            except queue.Full:
                continue
        return False

    # -- writer -----------------------------------------------------------

    def _write_loop(self, conn: socket.socket, cancel: threading.Event) -> None:
        """Drain backend replies into the client until cancelled."""
        while not cancel.is_set():
            data = self._next_reply()
            if data is None:
                continue
            try:
                conn.sendall(data)
            except OSError as exc:
                log.debug("Write to client failed: %s", exc)
                with self._lock:
                    self._unsent = data
                return

    def _next_reply(self) -> bytes | None:
        """The reply a previous writer failed to send, else the next queued one."""
        with self._lock:
            data, self._unsent = self._unsent, None
        if data is not None:
            return data
        try:
            return self._replies.get(timeout=self._config.poll_interval)
        except queue.Empty:
            return None

    # -- backend relay ----------------------------------------------------

    def _relay_loop(self) -> None:
        """Keep exactly one backend reader running per route in the table."""
        while self._running:
            current = self._routes.routes()
            for route in list(self._readers):
                if route not in current:
                    del self._readers[route]
            for route in current:
                if route in self._readers:
                    continue
                t = threading.Thread(
                    target=self._backend_reader, args=(route,), daemon=True,
                    name=f"backend-reader {route.endpoint}",
                )
                self._readers[route] = t
                t.start()
            time.sleep(self._config.poll_interval)

    def _backend_reader(self, route: ReliableRoute) -> None:
        """Decode records from one route until it is closed or gives up."""
        while self._running:
            try:
                record = read_record(
                    route,
                    chunk_size=self._config.read_chunk_size,
                    large_record_threshold=self._config.large_record_threshold,
                )
            except ProtocolError as exc:
                log.warning("Backend %s: %s, reconnecting", route.endpoint, exc)
                route.restart()
                continue
            except RouteError as exc:
                log.debug("Backend %s reader stopped: %s", route.endpoint, exc)
                return
            except Exception:
                log.exception("Error in backend reader for %s", route.endpoint)
                time.sleep(self._config.poll_interval)
                continue
            if self._routes.default_route() is not route:
                log.debug(
                    "Discarding %s record from non-default route %s",
                    record.record_type.name, route.endpoint,
                )
                continue
            self._put(self._replies, record.to_bytes())


def _close_quietly(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass  # not connected, or already closed
    sock.close()
