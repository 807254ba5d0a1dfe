"""Route table construction.

``RouteBuilder.build()`` turns a list of ``MountEntry`` values and a snapshot
of the handler registry into a complete ``RouteTable``. Each source is
classified by its URI scheme through the instance's ``SchemePolicy``:

  proxy scheme  → ReverseProxy to the origin
  no scheme     → registered handler of that identity, or left unbound
  other scheme  → explicit not-found responder

When no entry claims ``/`` a ``MountListing`` is bound there, so every table
has exactly one root route. The root route is always wrapped in
``JailRedirect`` over the table's own proxy mounts.

The builder performs no I/O and never touches the live table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional
from urllib.parse import urlsplit

import httpx

from mountmux.constants import DEFAULT_PROXY_SCHEMES, ROOT_MOUNT
from mountmux.fstab.loader import MountEntry
from mountmux.proxy.engine import ReverseProxy
from mountmux.proxy.responses import not_found_app
from mountmux.registry import Handler
from mountmux.routing.handlers import MountListing, endpoint_app
from mountmux.routing.jail import JailRedirect
from mountmux.routing.table import Route, RouteKind, RouteTable
from mountmux.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SchemePolicy:
    """Which fstab source schemes are reverse-proxied (compared lowercase)."""

    proxy_schemes: frozenset[str] = field(default=DEFAULT_PROXY_SCHEMES)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "proxy_schemes", frozenset(s.lower() for s in self.proxy_schemes)
        )

    def classify(self, source: str) -> RouteKind:
        """Classify a source descriptor.

        Raises:
            ValueError: ``source`` is not parseable as a URI.
        """
        scheme = urlsplit(source).scheme.lower()
        if not scheme:
            return RouteKind.HANDLER
        if scheme in self.proxy_schemes:
            return RouteKind.PROXY
        return RouteKind.NOT_FOUND


class RouteBuilder:
    def __init__(
        self,
        client: httpx.AsyncClient,
        scheme_policy: Optional[SchemePolicy] = None,
    ) -> None:
        self.client = client
        self.scheme_policy = scheme_policy or SchemePolicy()

    def build(
        self,
        entries: Iterable[MountEntry],
        handlers: Mapping[str, Handler],
        generation: int = 0,
    ) -> RouteTable:
        entries = list(entries)
        bound: dict[str, Route] = {}

        for entry in entries:
            try:
                kind = self.scheme_policy.classify(entry.source)
            except ValueError as exc:
                logger.warning(
                    "Unparsable fstab source, skipping",
                    source=entry.source,
                    mount_point=entry.mount_point,
                    error=str(exc),
                )
                continue

            if kind is RouteKind.PROXY:
                app = ReverseProxy(entry.source, entry.mount_point, self.client)
            elif kind is RouteKind.HANDLER:
                callback = handlers.get(entry.source)
                if callback is None:
                    logger.warning(
                        "Handler not registered, mount left unbound",
                        source=entry.source,
                        mount_point=entry.mount_point,
                    )
                    continue
                app = endpoint_app(callback)
            else:
                app = not_found_app

            if entry.mount_point in bound:
                logger.warning(
                    "Duplicate mount point, later entry wins",
                    mount_point=entry.mount_point,
                    replaced=bound[entry.mount_point].source,
                    source=entry.source,
                )
            bound[entry.mount_point] = Route(entry.mount_point, kind, app, entry.source)
            logger.debug(
                "Mounted",
                source=entry.source,
                mount_point=entry.mount_point,
                kind=kind.value,
            )

        proxy_mounts = [r.mount_point for r in bound.values() if r.kind is RouteKind.PROXY]
        root = bound.get(ROOT_MOUNT) or Route(ROOT_MOUNT, RouteKind.ROOT, MountListing(entries))
        bound[ROOT_MOUNT] = Route(
            root.mount_point,
            root.kind,
            JailRedirect(root.app, proxy_mounts),
            root.source,
        )

        return RouteTable.from_routes(bound.values(), entries, generation)
