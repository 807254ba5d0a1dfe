"""Tests for RouteTable resolution and MountTable swapping."""

from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from starlette.responses import PlainTextResponse

from mountmux.routing.dispatcher import MountTable
from mountmux.routing.handlers import endpoint_app
from mountmux.routing.table import Route, RouteKind, RouteTable


def _text_app(text: str):
    async def endpoint(request):
        return PlainTextResponse(text)

    return endpoint_app(endpoint)


def _table(*mounts: str, generation: int = 0) -> RouteTable:
    return RouteTable.from_routes(
        [Route(m, RouteKind.HANDLER, _text_app(m), m) for m in mounts],
        generation=generation,
    )


class TestRouteTable:
    def test_longest_prefix_wins(self):
        table = _table("/", "/mnt", "/mnt/a")
        assert table.resolve("/mnt/a/x").mount_point == "/mnt/a"
        assert table.resolve("/mnt/b").mount_point == "/mnt"
        assert table.resolve("/other").mount_point == "/"

    def test_segment_boundary(self):
        table = _table("/", "/mnt/a")
        assert table.resolve("/mnt/ab").mount_point == "/"

    def test_no_root_no_match(self):
        assert _table("/mnt/a").resolve("/x") is None

    def test_empty(self):
        table = RouteTable.empty()
        assert table.resolve("/") is None
        assert len(table) == 0

    def test_ordering_is_deterministic(self):
        assert _table("/b", "/", "/a", "/aa").mount_points == ["/aa", "/a", "/b", "/"]


class TestMountTable:
    def test_swap_returns_previous(self):
        first, second = _table("/"), _table("/", "/x")
        mount_table = MountTable(first)
        assert mount_table.swap(second) is first
        assert mount_table.table is second
        assert mount_table.route("/x/y").mount_point == "/x"

    @pytest.mark.asyncio
    async def test_dispatches_to_route(self):
        mount_table = MountTable(_table("/", "/mnt/a"))
        async with AsyncClient(
            transport=ASGITransport(app=mount_table), base_url="http://testserver"
        ) as client:
            assert (await client.get("/mnt/a/deep")).text == "/mnt/a"
            assert (await client.get("/elsewhere")).text == "/"

    @pytest.mark.asyncio
    async def test_no_route_is_404(self):
        async with AsyncClient(
            transport=ASGITransport(app=MountTable()), base_url="http://testserver"
        ) as client:
            response = await client.get("/anything")
        assert response.status_code == 404
        assert response.text == "404 page not found"

    @pytest.mark.asyncio
    async def test_requests_see_swapped_table(self):
        mount_table = MountTable(_table("/"))
        async with AsyncClient(
            transport=ASGITransport(app=mount_table), base_url="http://testserver"
        ) as client:
            assert (await client.get("/new")).text == "/"
            mount_table.swap(_table("/", "/new"))
            assert (await client.get("/new")).text == "/new"

    @pytest.mark.asyncio
    async def test_sync_endpoint_runs(self):
        def endpoint(request):
            return PlainTextResponse(request.url.path)

        table = RouteTable.from_routes([Route("/", RouteKind.HANDLER, endpoint_app(endpoint))])
        async with AsyncClient(
            transport=ASGITransport(app=MountTable(table)), base_url="http://testserver"
        ) as client:
            assert (await client.get("/sync")).text == "/sync"
