"""Error response builders for the router.

  build_not_found_response():
      HTTP 404: no mount serves the path, or the mount is bound to the
      explicit not-found responder (unrecognized source scheme).

  build_origin_unavailable_response():
      HTTP 502: the proxied origin could not be reached or spoke invalid HTTP.
      Origin 4xx/5xx responses are relayed as-is and never pass through here.

  build_config_error_response():
      HTTP 500: the configured origin URL was rejected at request time.
"""

from __future__ import annotations

from typing import Any, MutableMapping

from starlette.responses import JSONResponse, PlainTextResponse, Response

from mountmux.constants import REQUEST_ID_HEADER


def build_not_found_response() -> Response:
    return PlainTextResponse("404 page not found", status_code=404)


async def not_found_app(
    scope: MutableMapping[str, Any], receive: Any, send: Any
) -> None:
    """ASGI responder bound at mounts whose source scheme is not recognized."""
    await build_not_found_response()(scope, receive, send)


def build_origin_unavailable_response(request_id: str, reason: str = "") -> JSONResponse:
    """Build the HTTP 502 response for origin connectivity failures.

    Args:
        request_id: ULID for this request, echoed for log correlation.
        reason:     Short failure class (e.g. ``"ConnectError"``). MUST NOT
                    carry origin credentials or full URLs.
    """
    response = JSONResponse(
        status_code=502,
        content={
            "error": {
                "message": "Origin unavailable",
                "code": "origin_unavailable",
                "detail": reason if reason else None,
            }
        },
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def build_config_error_response(request_id: str) -> JSONResponse:
    response = JSONResponse(
        status_code=500,
        content={
            "error": {
                "message": "Internal configuration error",
                "code": "config_error",
            }
        },
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response
