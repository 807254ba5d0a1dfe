"""Immutable route table snapshot.

A ``RouteTable`` is built completely by ``RouteBuilder`` and only then handed
to ``MountTable.swap()``. Nothing mutates it afterwards, so request tasks may
read it without locking.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, MutableMapping, Optional

from mountmux.constants import ROOT_MOUNT
from mountmux.fstab.loader import MountEntry
from mountmux.proxy.paths import mount_matches

ASGIApp = Callable[[MutableMapping[str, Any], Any, Any], Awaitable[None]]


class RouteKind(str, enum.Enum):
    PROXY = "proxy"
    HANDLER = "handler"
    NOT_FOUND = "not_found"
    ROOT = "root"


@dataclass(frozen=True)
class Route:
    """One bound mount point.

    Fields:
        mount_point: Path prefix as written in the fstab.
        kind:        What the mount is bound to.
        app:         ASGI application answering requests under the mount.
        source:      Fstab source the route came from (None for the synthetic root).
    """

    mount_point: str
    kind: RouteKind
    app: ASGIApp
    source: Optional[str] = None


def _specificity(route: Route) -> tuple[int, str]:
    # longest prefix first; lexical order breaks ties deterministically
    return (-len(route.mount_point.rstrip("/")), route.mount_point)


@dataclass(frozen=True)
class RouteTable:
    routes: tuple[Route, ...]
    entries: tuple[MountEntry, ...] = ()
    generation: int = 0

    @classmethod
    def from_routes(
        cls,
        routes: Iterable[Route],
        entries: Iterable[MountEntry] = (),
        generation: int = 0,
    ) -> "RouteTable":
        return cls(
            routes=tuple(sorted(routes, key=_specificity)),
            entries=tuple(entries),
            generation=generation,
        )

    @classmethod
    def empty(cls) -> "RouteTable":
        return cls(routes=())

    def resolve(self, path: str) -> Optional[Route]:
        """Longest-prefix match of ``path`` on path segment boundaries."""
        for route in self.routes:
            if mount_matches(route.mount_point, path):
                return route
        return None

    def get(self, mount_point: str) -> Optional[Route]:
        for route in self.routes:
            if route.mount_point == mount_point:
                return route
        return None

    @property
    def root(self) -> Optional[Route]:
        return self.get(ROOT_MOUNT)

    @property
    def mount_points(self) -> list[str]:
        return [route.mount_point for route in self.routes]

    def __len__(self) -> int:
        return len(self.routes)
