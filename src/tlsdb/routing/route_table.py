"""Route table: EndPoint -> ReliableRoute plus the default route.

Only the interception engine mutates the table. The server's backend
readers look up routes and the default concurrently, so mutations and
snapshots go through one lock; no I/O ever happens while it is held.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable

from tlsdb.domain.endpoint import EndPoint
from tlsdb.errors import RouteNotFound
from tlsdb.routing.reliable_route import ReliableRoute

log = logging.getLogger(__name__)

RouteFactory = Callable[[EndPoint], ReliableRoute]


class RouteTable:
    """Keyed collection of routes with an optional default.

    Invariant: when `default` is not None it is a key of the table.

    Args:
        route_factory: opens a route for an endpoint and returns it once
            ready (ReliableRoute.open by default). Tests inject doubles.
    """

    def __init__(self, route_factory: RouteFactory | None = None) -> None:
        self._route_factory = route_factory or ReliableRoute.open
        self._routes: dict[EndPoint, ReliableRoute] = {}
        self._default: EndPoint | None = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._routes)

    def __contains__(self, endpoint: object) -> bool:
        with self._lock:
            return endpoint in self._routes

    @property
    def default(self) -> EndPoint | None:
        with self._lock:
            return self._default

    def get(self, endpoint: EndPoint) -> ReliableRoute | None:
        with self._lock:
            return self._routes.get(endpoint)

    def default_route(self) -> ReliableRoute | None:
        """The route behind the default endpoint, or None."""
        with self._lock:
            if self._default is None:
                return None
            return self._routes.get(self._default)

    def add(self, endpoint: EndPoint) -> ReliableRoute:
        """Open a route and insert it.

        A route added to an empty table becomes the default.
        Re-adding an existing endpoint replaces it and closes the old route.
        If opening fails the error propagates and the table is unchanged.
        """
        route = self._route_factory(endpoint)
        with self._lock:
            was_empty = not self._routes
            previous = self._routes.get(endpoint)
            self._routes[endpoint] = route
            if was_empty:
                self._default = endpoint
        if previous is not None:
            log.info("Replacing route %s", endpoint)
            previous.close()
        log.info("Route %s added", endpoint)
        return route

    def remove(self, endpoint: EndPoint) -> None:
        """Close and discard a route. Clears the default if it pointed here.

        Raises:
            RouteNotFound: endpoint is not in the table
        """
        with self._lock:
            route = self._routes.pop(endpoint, None)
            if route is None:
                raise RouteNotFound(endpoint)
            if self._default == endpoint:
                self._default = None
                log.info("Default route %s removed, no default route now", endpoint)
        route.close()
        log.info("Route %s removed", endpoint)

    def set_default(self, endpoint: EndPoint) -> None:
        """Raises RouteNotFound if endpoint is not in the table."""
        with self._lock:
            if endpoint not in self._routes:
                raise RouteNotFound(endpoint)
            self._default = endpoint
        log.info("Default route is now %s", endpoint)

    def routes(self) -> list[ReliableRoute]:
        """Snapshot of the open route objects."""
        with self._lock:
            return list(self._routes.values())

    def list(self) -> list[tuple[EndPoint, bool]]:
        """Snapshot of (endpoint, is_default) pairs."""
        with self._lock:
            return [(ep, ep == self._default) for ep in self._routes]

    def close_all(self) -> None:
        """Close every route and empty the table."""
        with self._lock:
            routes = list(self._routes.values())
            self._routes.clear()
            self._default = None
        for route in routes:
            route.close()
