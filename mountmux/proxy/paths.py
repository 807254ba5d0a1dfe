"""Path and query rewriting rules shared by the proxy, dispatcher and jail.

  single_joining_slash("/a/", "/b") == "/a/b"
  single_joining_slash("/a", "/b")  == "/a/b"
  single_joining_slash("/a", "b")   == "/a/b"

  merge_query("x=1", "y=2") == "x=1&y=2"
  merge_query("x=1", "")    == "x=1"
"""

from __future__ import annotations

from typing import Any, MutableMapping


def single_joining_slash(a: str, b: str) -> str:
    """Join two path fragments with exactly one slash between them."""
    a_slash = a.endswith("/")
    b_slash = b.startswith("/")
    if a_slash and b_slash:
        return a + b[1:]
    if not a_slash and not b_slash:
        return a + "/" + b
    return a + b


def merge_query(base: str, query: str) -> str:
    """Concatenate two raw query strings, adding ``&`` only between non-empty ones."""
    if not base or not query:
        return base + query
    return f"{base}&{query}"


def strip_mount(path: str, mount_point: str) -> str:
    """Remove the mount prefix from a request path.

    The mount's trailing slash is ignored, so ``/mnt/a`` and ``/mnt/a/`` both
    turn ``/mnt/a/x`` into ``/x``. The root mount strips nothing.
    """
    prefix = mount_point.rstrip("/")
    if path.startswith(prefix):
        return path[len(prefix):]
    return path


def mount_matches(mount_point: str, path: str) -> bool:
    """True when ``path`` lies under ``mount_point`` on a segment boundary."""
    prefix = mount_point.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


def route_path(scope: MutableMapping[str, Any]) -> str:
    """Return the request path relative to the ASGI ``root_path``."""
    path: str = scope.get("path", "/")
    root_path: str = scope.get("root_path", "")
    if root_path and path.startswith(root_path):
        path = path[len(root_path):]
    return path or "/"
