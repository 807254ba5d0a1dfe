"""HTTP header processing for forwarded requests.

  - build_upstream_headers(): strips hop-by-hop headers and the client-facing
    Host, appends X-Forwarded-* and injects the request id.
  - build_client_response_headers(): strips hop-by-hop headers from the origin
    response and keeps repeated headers (Set-Cookie) as separate lines.

RFC 7230 §6.1: hop-by-hop headers MUST NOT be forwarded by intermediaries.
"""

from __future__ import annotations

from typing import Iterable, Optional

import httpx

from mountmux.constants import REQUEST_ID_HEADER

# ─── Constants ────────────────────────────────────────────────────────────────

# host is derived from the origin URL: do not forward the client-facing host.
# content-length is recomputed by httpx from content= on the way out and
# dropped on the way back because the body is re-streamed.
HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)


def _connection_tokens(headers: Iterable[tuple[str, str]]) -> set[str]:
    """Header names listed in Connection are hop-by-hop for this message too."""
    tokens: set[str] = set()
    for name, value in headers:
        if name.lower() == "connection":
            tokens.update(t.strip().lower() for t in value.split(",") if t.strip())
    return tokens


# ─── Public API ───────────────────────────────────────────────────────────────


def build_upstream_headers(
    request_headers: Iterable[tuple[str, str]],
    request_id: str,
    *,
    client_host: Optional[str] = None,
    forwarded_host: Optional[str] = None,
    forwarded_proto: Optional[str] = None,
) -> list[tuple[str, str]]:
    """Build the header list to send to the origin.

    Rules applied (in order):
      1. Strip hop-by-hop headers, including any named by ``Connection``.
      2. Forward all remaining headers unchanged, repeated ones included.
      3. Append the client address to ``X-Forwarded-For``; set
         ``X-Forwarded-Host`` / ``X-Forwarded-Proto`` when not already present.
      4. Inject ``X-Mountmux-Request-ID: <request_id>``.
    """
    pairs = list(request_headers)
    dropped = HOP_BY_HOP_HEADERS | _connection_tokens(pairs)

    headers: list[tuple[str, str]] = []
    prior_forwarded_for: list[str] = []
    seen: set[str] = set()

    for name, value in pairs:
        lower_name = name.lower()
        if lower_name in dropped:
            continue
        if lower_name == "x-forwarded-for":
            prior_forwarded_for.append(value)
            continue
        if lower_name == REQUEST_ID_HEADER.lower():
            continue
        seen.add(lower_name)
        headers.append((name, value))

    if client_host:
        prior_forwarded_for.append(client_host)
    if prior_forwarded_for:
        headers.append(("X-Forwarded-For", ", ".join(prior_forwarded_for)))
    if forwarded_host and "x-forwarded-host" not in seen:
        headers.append(("X-Forwarded-Host", forwarded_host))
    if forwarded_proto and "x-forwarded-proto" not in seen:
        headers.append(("X-Forwarded-Proto", forwarded_proto))

    headers.append((REQUEST_ID_HEADER, request_id))
    return headers


def build_client_response_headers(
    upstream_headers: httpx.Headers,
) -> list[tuple[bytes, bytes]]:
    """Build raw ASGI response headers from the origin response.

    Content-Encoding is kept: the body is relayed as raw (still encoded) bytes.
    """
    pairs = upstream_headers.multi_items()
    dropped = HOP_BY_HOP_HEADERS | _connection_tokens(pairs)
    return [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in pairs
        if name.lower() not in dropped
    ]
