"""Tests for JailRedirect."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.responses import PlainTextResponse

from mountmux.routing.handlers import endpoint_app
from mountmux.routing.jail import JailRedirect


async def _root(request):
    return PlainTextResponse("root")


def _jail(*mounts: str) -> JailRedirect:
    return JailRedirect(endpoint_app(_root), mounts)


class TestRedirectLocation:
    def test_matching_referer(self):
        location = _jail("/mnt/a").redirect_location("http://host/mnt/a/page", "/style.css")
        assert location == "http://host/mnt/a/style.css"

    def test_request_query_kept(self):
        location = _jail("/mnt/a").redirect_location("http://host/mnt/a/page?r=1", "/s", "q=2")
        assert location == "http://host/mnt/a/s?q=2"

    def test_trailing_slash_mount(self):
        location = _jail("/mnt/a/").redirect_location("http://host/mnt/a/page", "/x")
        assert location == "http://host/mnt/a/x"

    def test_referer_equal_to_mount(self):
        assert _jail("/mnt/a").redirect_location("http://host/mnt/a", "/x") == "http://host/mnt/a/x"

    def test_no_match(self):
        assert _jail("/mnt/a").redirect_location("http://host/elsewhere/page", "/x") is None

    def test_segment_boundary(self):
        assert _jail("/mnt/a").redirect_location("http://host/mnt/ab/page", "/x") is None

    def test_longest_mount_first(self):
        jail = _jail("/mnt", "/mnt/a")
        assert jail.proxy_mounts == ("/mnt/a", "/mnt")
        assert jail.redirect_location("http://host/mnt/a/p", "/x") == "http://host/mnt/a/x"

    def test_root_mount_never_jails(self):
        jail = _jail("/")
        assert jail.proxy_mounts == ()

    def test_unparsable_referer(self):
        assert _jail("/mnt/a").redirect_location("http://[::1/mnt/a", "/x") is None


class TestJailRedirectApp:
    @pytest.mark.asyncio
    async def test_redirects_with_302(self):
        async with AsyncClient(
            transport=ASGITransport(app=_jail("/mnt/a")), base_url="http://host"
        ) as client:
            response = await client.get(
                "/page2", headers={"Referer": "http://host/mnt/a/page"}
            )
        assert response.status_code == 302
        assert response.headers["location"] == "http://host/mnt/a/page2"

    @pytest.mark.asyncio
    async def test_without_referer_runs_root(self):
        async with AsyncClient(
            transport=ASGITransport(app=_jail("/mnt/a")), base_url="http://host"
        ) as client:
            response = await client.get("/page2")
        assert response.status_code == 200
        assert response.text == "root"

    @pytest.mark.asyncio
    async def test_unmatched_referer_runs_root(self):
        async with AsyncClient(
            transport=ASGITransport(app=_jail("/mnt/a")), base_url="http://host"
        ) as client:
            response = await client.get("/", headers={"Referer": "http://host/other"})
        assert response.text == "root"
