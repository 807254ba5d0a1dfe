"""FstabRouter: the object a host application embeds.

Usage::

    router = FstabRouter("./fstab/fstab.json", reload_period=10)

    @router.handler("worker")
    async def worker(request: Request) -> Response:
        return PlainTextResponse("hello")

    async with router:               # starts the reload loop
        await serve(router.app)      # any ASGI server / framework mount

The constructor performs the first load synchronously. If it fails the router
serves only the default root until a later reload succeeds. Handlers added
once the loop is running go through ``await router.aregister(...)``.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional

import httpx

from mountmux.constants import DEFAULT_RELOAD_PERIOD_S, RELOAD_POLICY_ALWAYS
from mountmux.fstab.loader import MountEntry
from mountmux.proxy.engine import create_http_client
from mountmux.registry import Handler, HandlerRegistry
from mountmux.reloader import ReloadScheduler, ReloadState
from mountmux.routing.builder import RouteBuilder, SchemePolicy
from mountmux.routing.dispatcher import MountTable
from mountmux.routing.table import RouteTable
from mountmux.utils.logger import get_logger

logger = get_logger(__name__)


class FstabRouter:
    def __init__(
        self,
        fstab_path: str,
        *,
        reload_period: float = DEFAULT_RELOAD_PERIOD_S,
        policy: str = RELOAD_POLICY_ALWAYS,
        scheme_policy: Optional[SchemePolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        watch: bool = False,
    ) -> None:
        self.fstab_path = fstab_path
        # one write lock for registration and reloads
        self._lock = threading.RLock()
        self._owns_client = http_client is None
        self._client = http_client if http_client is not None else create_http_client()

        self.registry = HandlerRegistry(lock=self._lock)
        self._mount_table = MountTable()
        self.builder = RouteBuilder(self._client, scheme_policy)
        self.scheduler = ReloadScheduler(
            fstab_path,
            self.registry,
            self._mount_table,
            self.builder,
            lock=self._lock,
            period=reload_period,
            policy=policy,
            watch=watch,
        )

        if not self.scheduler.reload():
            # still honour "root is always bound" before any good fstab is seen
            self._mount_table.swap(self.builder.build([], self.registry.snapshot()))

    # ── Host-facing API ───────────────────────────────────────────────────────

    @property
    def app(self) -> MountTable:
        """The live ASGI application to serve or mount."""
        return self._mount_table

    @property
    def table(self) -> RouteTable:
        return self._mount_table.table

    @property
    def entries(self) -> tuple[MountEntry, ...]:
        return self._mount_table.table.entries

    @property
    def state(self) -> ReloadState:
        return self.scheduler.state

    @property
    def scheme_policy(self) -> SchemePolicy:
        return self.builder.scheme_policy

    def register(self, identity: str, callback: Handler) -> bool:
        """Add or replace a local handler and reload immediately.

        Runs the reload on the calling thread and may wait for a reload in
        progress, so call it at startup or from sync code. Coroutines use
        ``aregister``.

        Returns the reload result: True when the new table is live.
        """
        with self._lock:
            self.registry.register(identity, callback)
            return self.scheduler.reload()

    async def aregister(self, identity: str, callback: Handler) -> bool:
        """``register`` for code running on the event loop.

        The lock wait and the reload happen on a worker thread so in-flight
        requests keep being served.
        """
        return await asyncio.to_thread(self.register, identity, callback)

    def handler(self, identity: str) -> Callable[[Handler], Handler]:
        """Decorator form of ``register``."""

        def decorator(callback: Handler) -> Handler:
            self.register(identity, callback)
            return callback

        return decorator

    def set_reload_period(self, seconds: float) -> None:
        """Set the automatic reload interval in seconds; 0 disables it."""
        self.scheduler.set_period(seconds)

    def reload(self) -> bool:
        return self.scheduler.reload()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "FstabRouter":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()
