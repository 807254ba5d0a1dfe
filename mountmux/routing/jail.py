"""Referer-based containment for proxied origins.

A proxied origin emits absolute links (``/style.css``) that know nothing of
the mount prefix it is served under. Those requests miss every mount and land
on the root route. ``JailRedirect`` wraps the root route: when the request's
Referer path contains a proxy mount prefix, the browser is sent back inside
that mount with a 302 instead of being served by the root handler.

Candidate mounts are tested longest first, then lexically, so overlapping
prefixes resolve the same way every time. Nested mounts are still not
supported: a referer under ``/a/b`` where ``/a`` and ``/a/b`` are both
proxied always resolves to ``/a/b``.
"""

from __future__ import annotations

from typing import Any, Iterable, MutableMapping, Optional
from urllib.parse import urlsplit, urlunsplit

from starlette.datastructures import Headers
from starlette.responses import RedirectResponse

from mountmux.proxy.paths import route_path, single_joining_slash
from mountmux.routing.table import ASGIApp
from mountmux.utils.logger import get_logger

logger = get_logger(__name__)


class JailRedirect:
    """ASGI wrapper redirecting referer-identified requests into their mount."""

    def __init__(self, app: ASGIApp, proxy_mounts: Iterable[str]) -> None:
        self.app = app
        # the root mount would contain every referer; it is never a jail
        mounts = {m for m in proxy_mounts if m.rstrip("/")}
        self.proxy_mounts: tuple[str, ...] = tuple(
            sorted(mounts, key=lambda m: (-len(m.rstrip("/")), m))
        )

    def redirect_location(self, referer: str, path: str, query: str = "") -> Optional[str]:
        """Return the redirect target for a request, or None to serve it normally."""
        try:
            ref = urlsplit(referer)
        except ValueError:
            return None

        ref_path = ref.path.rstrip("/") + "/"
        for mount in self.proxy_mounts:
            prefix = mount.rstrip("/")
            if prefix + "/" in ref_path:
                target = single_joining_slash(prefix, path)
                return urlunsplit((ref.scheme, ref.netloc, target, query, ""))
        return None

    async def __call__(
        self, scope: MutableMapping[str, Any], receive: Any, send: Any
    ) -> None:
        if scope["type"] == "http" and self.proxy_mounts:
            referer = Headers(scope=scope).get("referer")
            if referer:
                query = scope.get("query_string", b"").decode("latin-1")
                location = self.redirect_location(referer, route_path(scope), query)
                if location is not None:
                    logger.debug("jail_redirect", referer=referer, location=location)
                    response = RedirectResponse(location, status_code=302)
                    await response(scope, receive, send)
                    return
        await self.app(scope, receive, send)
