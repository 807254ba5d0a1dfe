"""Async reverse proxy for fstab origins.

One ``ReverseProxy`` is built per proxied fstab entry on every reload. It is a
plain ASGI application, so the dispatcher can call it directly.

Forwarding rules:
  - Path: the mount prefix is stripped from the request path and the rest is
    spliced onto the origin's base path with ``single_joining_slash``.
  - Query: the origin's base query and the request query are merged with
    ``merge_query`` (``&`` only when both are non-empty).
  - Headers: hop-by-hop stripped, X-Forwarded-* appended, request id injected.
  - Body: request body forwarded as raw bytes; response body relayed as raw
    bytes (encoding untouched) through a StreamingResponse.
  - Redirects are never followed; 3xx goes back to the client.

Failure modes:
  - httpx.TransportError (connect, timeout, protocol, unsupported scheme) → 502
  - httpx.InvalidURL → 500 (configuration error)
  - Origin 4xx/5xx → passed through unchanged
"""

from __future__ import annotations

from typing import Any, MutableMapping, Optional
from urllib.parse import quote, urlsplit

import httpx
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse

from mountmux.constants import (
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
    REQUEST_ID_HEADER,
)
from mountmux.proxy.headers import build_client_response_headers, build_upstream_headers
from mountmux.proxy.paths import merge_query, route_path, single_joining_slash, strip_mount
from mountmux.proxy.responses import (
    build_config_error_response,
    build_origin_unavailable_response,
)
from mountmux.utils.logger import clear_request_id, get_logger, set_request_id
from mountmux.utils.ulid import generate_ulid

logger = get_logger(__name__)

# Characters left unescaped when re-encoding a decoded request path.
_PATH_SAFE = "/:@!$&'()*+,;=~"

# Dropped when relaying an already-decoded body.
_DECODED_BODY_HEADERS = frozenset({b"content-encoding", b"content-length"})


# ─── httpx.AsyncClient factory ────────────────────────────────────────────────


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used by every proxy route.

    Created once per router and reused across reloads. No timeout is imposed
    here; request deadlines belong to the host listener.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(None),
        follow_redirects=False,
    )


# ─── ReverseProxy ─────────────────────────────────────────────────────────────


class ReverseProxy:
    """ASGI app forwarding everything under ``mount_point`` to ``origin``."""

    def __init__(self, origin: str, mount_point: str, client: httpx.AsyncClient) -> None:
        parts = urlsplit(origin)
        self.origin = origin
        self.mount_point = mount_point
        self._client = client
        self._scheme = parts.scheme.lower()
        self._netloc = parts.netloc
        self._base_path = parts.path
        self._base_query = parts.query

    def __repr__(self) -> str:
        return f"ReverseProxy({self.origin!r} at {self.mount_point!r})"

    def target_url(self, path: str, query: str = "") -> str:
        """Return the origin URL a request for ``path?query`` is forwarded to."""
        remainder = quote(strip_mount(path, self.mount_point), safe=_PATH_SAFE)
        target_path = single_joining_slash(self._base_path, remainder)
        url = f"{self._scheme}://{self._netloc}{target_path}"
        target_query = merge_query(self._base_query, query)
        if target_query:
            url = f"{url}?{target_query}"
        return url

    async def __call__(
        self, scope: MutableMapping[str, Any], receive: Any, send: Any
    ) -> None:
        request = Request(scope, receive)
        response = await self.forward(request)
        await response(scope, receive, send)

    async def forward(self, request: Request) -> Response:
        request_id = generate_ulid()
        set_request_id(request_id)
        try:
            return await self._forward(request, request_id)
        finally:
            clear_request_id()

    async def _forward(self, request: Request, request_id: str) -> Response:
        query = request.scope.get("query_string", b"").decode("latin-1")
        upstream_url = self.target_url(route_path(request.scope), query)

        client_host: Optional[str] = request.client.host if request.client else None
        upstream_headers = build_upstream_headers(
            request.headers.items(),
            request_id,
            client_host=client_host,
            forwarded_host=request.headers.get("host"),
            forwarded_proto=request.url.scheme,
        )

        body: bytes = await request.body()

        try:
            upstream_request = self._client.build_request(
                method=request.method,
                url=upstream_url,
                headers=upstream_headers,
                content=body,
            )
            upstream_response = await self._client.send(upstream_request, stream=True)
        except httpx.InvalidURL as exc:
            logger.error(
                "invalid_origin_url",
                mount_point=self.mount_point,
                upstream_url=upstream_url,
                error=str(exc),
            )
            return build_config_error_response(request_id)
        except httpx.TransportError as exc:
            logger.warning(
                "origin_unavailable",
                mount_point=self.mount_point,
                upstream_url=upstream_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return build_origin_unavailable_response(request_id, type(exc).__name__)

        logger.info(
            "request_proxied",
            method=request.method,
            mount_point=self.mount_point,
            upstream=upstream_url,
            status_code=upstream_response.status_code,
        )

        if upstream_response.is_stream_consumed:
            # body was already read (event hook or in-memory transport); the
            # bytes are decoded, so the encoding headers no longer apply
            await upstream_response.aclose()
            raw_headers = [
                (name, value)
                for name, value in build_client_response_headers(upstream_response.headers)
                if name not in _DECODED_BODY_HEADERS
            ]
            response: Response = Response(
                content=upstream_response.content,
                status_code=upstream_response.status_code,
            )
            response.raw_headers = raw_headers + [
                (b"content-length", str(len(upstream_response.content)).encode("latin-1"))
            ]
        else:
            response = StreamingResponse(
                upstream_response.aiter_raw(),
                status_code=upstream_response.status_code,
                background=BackgroundTask(upstream_response.aclose),
            )
            response.raw_headers = build_client_response_headers(upstream_response.headers)
        response.raw_headers.append(
            (REQUEST_ID_HEADER.lower().encode("latin-1"), request_id.encode("latin-1"))
        )
        return response
