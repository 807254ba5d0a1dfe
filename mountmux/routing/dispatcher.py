"""Live, swappable mount table.

``MountTable`` is the ASGI application a host server serves. It holds one
``RouteTable`` reference; ``swap()`` rebinds it and is the only mutator.
Each request reads the reference exactly once, so it is served entirely by
the table of the last completed swap (or the one before, if it raced the
swap) and never by a partially built one. Reads take no lock.
"""

from __future__ import annotations

from typing import Any, MutableMapping, Optional

from mountmux.proxy.paths import route_path
from mountmux.proxy.responses import build_not_found_response
from mountmux.routing.table import Route, RouteTable
from mountmux.utils.logger import get_logger

logger = get_logger(__name__)


class MountTable:
    def __init__(self, table: Optional[RouteTable] = None) -> None:
        self._table = table if table is not None else RouteTable.empty()

    @property
    def table(self) -> RouteTable:
        return self._table

    def swap(self, table: RouteTable) -> RouteTable:
        """Make ``table`` live and return the table it replaced."""
        previous, self._table = self._table, table
        logger.info(
            "Mount table swapped",
            generation=table.generation,
            mounts=table.mount_points,
        )
        return previous

    def route(self, path: str) -> Optional[Route]:
        return self._table.resolve(path)

    async def __call__(
        self, scope: MutableMapping[str, Any], receive: Any, send: Any
    ) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] == "websocket":
            await send({"type": "websocket.close", "code": 1000})
            return

        route = self._table.resolve(route_path(scope))
        if route is None:
            await build_not_found_response()(scope, receive, send)
            return
        await route.app(scope, receive, send)

    @staticmethod
    async def _lifespan(receive: Any, send: Any) -> None:
        # nothing to start: the router owns its own lifecycle
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return
