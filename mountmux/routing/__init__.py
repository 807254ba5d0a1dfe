"""Mount table construction and dispatch.

Public API:
    RouteTable, Route, RouteKind: immutable dispatch snapshot
    RouteBuilder, SchemePolicy  : entries + handlers → RouteTable
    MountTable                  : live, swappable ASGI dispatcher
    JailRedirect                : referer-based redirect on the root route
"""
from mountmux.routing.builder import RouteBuilder, SchemePolicy
from mountmux.routing.dispatcher import MountTable
from mountmux.routing.jail import JailRedirect
from mountmux.routing.table import Route, RouteKind, RouteTable

__all__ = [
    "JailRedirect",
    "MountTable",
    "Route",
    "RouteBuilder",
    "RouteKind",
    "RouteTable",
    "SchemePolicy",
]
