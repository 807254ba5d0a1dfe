"""Root test configuration for mountmux.

Provides fstab-writing helpers and an in-process mock origin built on
httpx.MockTransport, so no test touches the network.
"""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Optional

import httpx
import pytest


class MockOrigin:
    """Records every forwarded request and answers with a fixed response."""

    def __init__(
        self,
        *,
        status_code: int = 200,
        body: bytes = b"origin says hi",
        headers: Optional[list[tuple[str, str]]] = None,
    ) -> None:
        self.received: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body
        self.headers = headers or [("content-type", "text/plain")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.received.append(request)
        # stream= keeps the body unread so the proxy relays it chunk by chunk
        return httpx.Response(
            self.status_code, stream=httpx.ByteStream(self.body), headers=self.headers
        )

    def client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), **kwargs)


@pytest.fixture
def mock_origin() -> MockOrigin:
    return MockOrigin()


@pytest.fixture
def write_fstab(tmp_path) -> Callable[..., str]:
    """Write ``{"Fstab": mapping}`` as JSON (or raw text) and return the path."""
    path = os.path.join(str(tmp_path), "fstab.json")

    def _write(mapping: Optional[dict] = None, *, raw: Optional[str] = None) -> str:
        with open(path, "w") as fh:
            if raw is not None:
                fh.write(raw)
            else:
                json.dump({"Fstab": mapping or {}}, fh)
        return path

    return _write


@pytest.fixture(autouse=True)
def clear_mountmux_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MOUNTMUX_CONFIG", "MOUNTMUX_FSTAB", "MOUNTMUX_PORT", "MOUNTMUX_RELOAD_PERIOD"):
        monkeypatch.delenv(name, raising=False)
