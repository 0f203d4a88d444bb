"""Outbound routing: self-healing backend connections and the route table.

  - ReliableRoute: one backend connection with a reconnect state machine
  - RouteTable: endpoint-keyed routes plus the default route
"""
from tlsdb.routing.reliable_route import ReliableRoute, RouteState
from tlsdb.routing.route_table import RouteFactory, RouteTable

__all__ = [
    "ReliableRoute",
    "RouteState",
    "RouteFactory",
    "RouteTable",
]
