"""ASGI adapters for local handlers and the synthetic root."""

from __future__ import annotations

import inspect
from typing import Any, Iterable, MutableMapping

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from mountmux.fstab.loader import MountEntry
from mountmux.proxy.paths import route_path
from mountmux.proxy.responses import build_not_found_response
from mountmux.registry import Handler
from mountmux.routing.table import ASGIApp


def endpoint_app(endpoint: Handler) -> ASGIApp:
    """Wrap a request endpoint as an ASGI app. Sync endpoints run in the threadpool."""
    is_async = inspect.iscoroutinefunction(endpoint) or inspect.iscoroutinefunction(
        getattr(endpoint, "__call__", None)
    )

    async def app(scope: MutableMapping[str, Any], receive: Any, send: Any) -> None:
        request = Request(scope, receive, send)
        if is_async:
            response = await endpoint(request)  # type: ignore[misc]
        else:
            response = await run_in_threadpool(endpoint, request)
        await response(scope, receive, send)

    return app


class MountListing:
    """Default root handler: ``GET /`` lists the fstab, anything else is 404."""

    def __init__(self, entries: Iterable[MountEntry]) -> None:
        self.entries = tuple(entries)

    def render(self) -> str:
        return "".join(f"{e.source} -> {e.mount_point}\n" for e in self.entries)

    async def __call__(
        self, scope: MutableMapping[str, Any], receive: Any, send: Any
    ) -> None:
        if route_path(scope) == "/":
            response = PlainTextResponse(self.render())
        else:
            response = build_not_found_response()
        await response(scope, receive, send)
