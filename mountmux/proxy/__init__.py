"""Reverse proxy for fstab origins.

Public API:
    ReverseProxy       : ASGI app forwarding one mount point to one origin
    create_http_client : shared pooled httpx.AsyncClient factory
    single_joining_slash, merge_query: URL rewriting rules
"""
from mountmux.proxy.engine import ReverseProxy, create_http_client
from mountmux.proxy.paths import merge_query, single_joining_slash

__all__ = ["ReverseProxy", "create_http_client", "merge_query", "single_joining_slash"]
