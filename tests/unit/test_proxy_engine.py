"""Tests for ReverseProxy URL rewriting and forwarding."""

from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from mountmux.constants import REQUEST_ID_HEADER
from mountmux.proxy.engine import ReverseProxy, create_http_client


def _proxy(origin: str, mount: str, client: httpx.AsyncClient | None = None) -> ReverseProxy:
    return ReverseProxy(origin, mount, client or httpx.AsyncClient())


class TestTargetUrl:
    def test_strip_and_join(self):
        assert _proxy("http://a.example/", "/mnt/a").target_url("/mnt/a/x", "q=1") == (
            "http://a.example/x?q=1"
        )

    def test_origin_base_path(self):
        proxy = _proxy("https://a.example/base/", "/mnt/a")
        assert proxy.target_url("/mnt/a/x/y") == "https://a.example/base/x/y"

    def test_origin_without_path(self):
        assert _proxy("http://a.example", "/mnt/a").target_url("/mnt/a/x") == "http://a.example/x"

    def test_mount_itself(self):
        assert _proxy("http://a.example/", "/mnt/a").target_url("/mnt/a") == "http://a.example/"

    def test_query_merge(self):
        proxy = _proxy("http://a.example/?x=1", "/mnt/a")
        assert proxy.target_url("/mnt/a/p", "y=2") == "http://a.example/p?x=1&y=2"
        assert proxy.target_url("/mnt/a/p") == "http://a.example/p?x=1"

    def test_port_kept(self):
        assert _proxy("http://a.example:8081/", "/m").target_url("/m/x") == (
            "http://a.example:8081/x"
        )

    def test_scheme_lowercased(self):
        assert _proxy("HTTP://a.example/", "/m").target_url("/m/x") == "http://a.example/x"

    def test_path_reencoded(self):
        assert _proxy("http://a.example/", "/m").target_url("/m/a b") == "http://a.example/a%20b"


class TestCreateHttpClient:
    @pytest.mark.asyncio
    async def test_does_not_follow_redirects(self):
        client = create_http_client()
        try:
            assert client.follow_redirects is False
            assert client.timeout.read is None
        finally:
            await client.aclose()


class TestForward:
    @pytest.mark.asyncio
    async def test_forwards_method_body_and_relays_response(self, mock_origin):
        mock_origin.status_code = 201
        mock_origin.headers = [("content-type", "text/plain"), ("set-cookie", "s=1")]
        proxy = _proxy("http://a.example/", "/mnt/a", mock_origin.client())

        async with AsyncClient(
            transport=ASGITransport(app=proxy), base_url="http://edge.example"
        ) as client:
            response = await client.post("/mnt/a/items?q=1", content=b"payload")

        assert response.status_code == 201
        assert response.text == "origin says hi"
        assert response.headers["set-cookie"] == "s=1"
        assert len(response.headers[REQUEST_ID_HEADER]) == 26

        forwarded = mock_origin.received[0]
        assert forwarded.method == "POST"
        assert str(forwarded.url) == "http://a.example/items?q=1"
        assert forwarded.content == b"payload"
        assert forwarded.headers["host"] == "a.example"
        assert forwarded.headers["x-forwarded-host"] == "edge.example"
        assert forwarded.headers[REQUEST_ID_HEADER] == response.headers[REQUEST_ID_HEADER]

    @pytest.mark.asyncio
    async def test_origin_error_status_passed_through(self, mock_origin):
        mock_origin.status_code = 503
        proxy = _proxy("http://a.example/", "/mnt/a", mock_origin.client())
        async with AsyncClient(
            transport=ASGITransport(app=proxy), base_url="http://edge.example"
        ) as client:
            response = await client.get("/mnt/a/")
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_connect_error_is_502(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        proxy = _proxy(
            "http://a.example/", "/mnt/a", httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        )
        async with AsyncClient(
            transport=ASGITransport(app=proxy), base_url="http://edge.example"
        ) as client:
            response = await client.get("/mnt/a/x")
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "origin_unavailable"
        assert response.json()["error"]["detail"] == "ConnectError"

    @pytest.mark.asyncio
    async def test_redirect_not_followed(self, mock_origin):
        mock_origin.status_code = 301
        mock_origin.headers = [("location", "http://a.example/elsewhere")]
        proxy = _proxy("http://a.example/", "/mnt/a", mock_origin.client())
        async with AsyncClient(
            transport=ASGITransport(app=proxy), base_url="http://edge.example"
        ) as client:
            response = await client.get("/mnt/a/old")
        assert response.status_code == 301
        assert response.headers["location"] == "http://a.example/elsewhere"
        assert len(mock_origin.received) == 1

    @pytest.mark.asyncio
    async def test_body_streamed_from_origin(self, mock_origin):
        mock_origin.body = b"chunk" * 1000
        proxy = _proxy("http://a.example/", "/mnt/a", mock_origin.client())
        async with AsyncClient(
            transport=ASGITransport(app=proxy), base_url="http://edge.example"
        ) as client:
            response = await client.get("/mnt/a/big")
        assert response.status_code == 200
        assert response.content == b"chunk" * 1000

    @pytest.mark.asyncio
    async def test_body_already_read_by_hook_is_relayed(self, mock_origin):
        async def read_body(response: httpx.Response) -> None:
            await response.aread()

        mock_origin.headers = [("content-type", "text/plain"), ("content-length", "14")]
        proxy = _proxy(
            "http://a.example/",
            "/mnt/a",
            mock_origin.client(event_hooks={"response": [read_body]}),
        )
        async with AsyncClient(
            transport=ASGITransport(app=proxy), base_url="http://edge.example"
        ) as client:
            response = await client.get("/mnt/a/x")
        assert response.status_code == 200
        assert response.text == "origin says hi"
        assert response.headers["content-length"] == "14"
        assert response.headers["content-type"] == "text/plain"
        assert len(response.headers[REQUEST_ID_HEADER]) == 26

    @pytest.mark.asyncio
    async def test_eagerly_built_origin_response_is_relayed(self):
        def answer(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"in memory")

        proxy = _proxy(
            "http://a.example/", "/mnt/a", httpx.AsyncClient(transport=httpx.MockTransport(answer))
        )
        async with AsyncClient(
            transport=ASGITransport(app=proxy), base_url="http://edge.example"
        ) as client:
            response = await client.get("/mnt/a/x")
        assert response.status_code == 200
        assert response.content == b"in memory"
