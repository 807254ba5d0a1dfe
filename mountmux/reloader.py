"""Background reload loop for the mount table.

One reload is always the same three steps, executed under the router's write
lock::

    load_fstab(path)  →  RouteBuilder.build(entries, registry.snapshot())  →  MountTable.swap(table)

The new table is built in isolation and only swapped in once complete. If the
fstab cannot be read or parsed the error is logged and the live table keeps
serving unchanged; nothing is cleared ahead of time.

Scheduling:
  - ``run()`` ticks every ``period`` seconds; ``period == 0`` disables ticks.
  - policy ``always`` reloads on every tick; ``on_change`` only when the
    fstab's mtime differs from the last successfully loaded one.
  - ``set_period()`` wakes the loop so a new period applies immediately.
  - ``reload()`` can be called synchronously at any time (registration path).
  - ``watch=True`` also reloads on file change events from watchfiles.
  - ``stop()`` ends the loop and the watcher deterministically.

Blocking file I/O runs in a worker thread; the event loop keeps serving
requests during a reload.
"""

from __future__ import annotations

import asyncio
import enum
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Optional

import watchfiles

from mountmux.constants import (
    DEFAULT_RELOAD_PERIOD_S,
    RELOAD_POLICY_ALWAYS,
    RELOAD_POLICY_ON_CHANGE,
    VALID_RELOAD_POLICIES,
)
from mountmux.fstab.loader import FstabParseError, load_fstab, source_mtime
from mountmux.registry import HandlerRegistry
from mountmux.routing.builder import RouteBuilder
from mountmux.routing.dispatcher import MountTable
from mountmux.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)


class ReloadPhase(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    BUILDING = "building"
    SWAPPED = "swapped"


@dataclass
class ReloadState:
    """Observable reload bookkeeping (timestamps are epoch seconds)."""

    period: float = DEFAULT_RELOAD_PERIOD_S
    policy: str = RELOAD_POLICY_ALWAYS
    phase: ReloadPhase = ReloadPhase.IDLE
    last_attempt: Optional[float] = None
    last_success: Optional[float] = None
    source_mtime: Optional[float] = None
    last_error: Optional[str] = None
    reloads: int = 0
    failures: int = 0

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["phase"] = self.phase.value
        return data


def validate_period(seconds: float) -> float:
    if seconds < 0:
        raise ValueError(f"reload period must be >= 0, got {seconds}")
    return float(seconds)


class ReloadScheduler:
    def __init__(
        self,
        path: str,
        registry: HandlerRegistry,
        table: MountTable,
        builder: RouteBuilder,
        *,
        lock: Optional[Any] = None,
        period: float = DEFAULT_RELOAD_PERIOD_S,
        policy: str = RELOAD_POLICY_ALWAYS,
        watch: bool = False,
    ) -> None:
        if policy not in VALID_RELOAD_POLICIES:
            raise ValueError(
                f"unknown reload policy {policy!r}; expected one of {sorted(VALID_RELOAD_POLICIES)}"
            )
        self.path = path
        self.registry = registry
        self.table = table
        self.builder = builder
        self.watch = watch
        self.state = ReloadState(period=validate_period(period), policy=policy)

        self._lock = lock if lock is not None else threading.RLock()
        self._generation = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]

    # ── Reload ────────────────────────────────────────────────────────────────

    def reload(self) -> bool:
        """Load, build and swap. Returns False (live table untouched) on failure."""
        with self._lock:
            self.state.last_attempt = time.time()
            self.state.phase = ReloadPhase.LOADING
            try:
                return self._load_build_swap()
            finally:
                self.state.phase = ReloadPhase.IDLE

    def _load_build_swap(self) -> bool:
        try:
            mtime = source_mtime(self.path)
            entries = load_fstab(self.path)
        except (OSError, FstabParseError) as exc:
            self.state.failures += 1
            self.state.last_error = f"{type(exc).__name__}: {exc}"
            logger.error(
                "Mount table reload failed, keeping live table",
                path=self.path,
                error_type=type(exc).__name__,
                error=str(exc),
                generation=self.table.table.generation,
            )
            return False

        self.state.phase = ReloadPhase.BUILDING
        with PerformanceLogger("mount_table_reload", logger, path=self.path):
            self._generation += 1
            new_table = self.builder.build(
                entries, self.registry.snapshot(), generation=self._generation
            )
            self.table.swap(new_table)

        self.state.phase = ReloadPhase.SWAPPED
        self.state.reloads += 1
        self.state.last_success = time.time()
        self.state.source_mtime = mtime
        self.state.last_error = None
        return True

    async def areload(self) -> bool:
        """``reload()`` on a worker thread; unexpected errors are logged, not raised."""
        try:
            return await asyncio.to_thread(self.reload)
        except Exception as exc:  # noqa: BLE001
            self.state.failures += 1
            self.state.last_error = f"{type(exc).__name__}: {exc}"
            logger.error(
                "Unexpected reload error (non-fatal)",
                path=self.path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False

    def should_reload(self) -> bool:
        """Decide whether a scheduled tick reloads."""
        if self.state.period <= 0:
            return False
        if self.state.policy == RELOAD_POLICY_ON_CHANGE:
            try:
                mtime = source_mtime(self.path)
            except OSError:
                # let reload() record and log the failure
                return True
            return mtime != self.state.source_mtime
        return True

    # ── Scheduling ────────────────────────────────────────────────────────────

    def set_period(self, seconds: float) -> None:
        """Change the tick period; 0 disables automatic reload."""
        self.state.period = validate_period(seconds)
        logger.info("Reload period set", period=self.state.period)
        self._wake()

    def _wake(self) -> None:
        if self._loop is None or self._wakeup is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._wakeup.set)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def run(self) -> None:
        """Tick loop; returns when ``stop()`` is called."""
        assert self._wakeup is not None and self._stop_event is not None
        logger.info(
            "Reload scheduler started",
            path=self.path,
            period=self.state.period,
            policy=self.state.policy,
        )
        while not self._stop_event.is_set():
            self._wakeup.clear()
            period = self.state.period
            try:
                await asyncio.wait_for(
                    self._wakeup.wait(), timeout=period if period > 0 else None
                )
                # woken by set_period() or stop(): re-read period and stop flag
                continue
            except asyncio.TimeoutError:
                pass

            if self.should_reload():
                await self.areload()
        logger.info("Reload scheduler stopped", path=self.path)

    async def watch_file(self) -> None:
        """Reload on every change event for the fstab file."""
        assert self._stop_event is not None
        logger.info("Fstab watcher started", path=self.path)
        try:
            async for _ in watchfiles.awatch(self.path, stop_event=self._stop_event):
                await self.areload()
        except FileNotFoundError as exc:
            logger.error("Fstab watcher stopped: file missing", path=self.path, error=str(exc))
        logger.debug("Fstab watcher stopped", path=self.path)

    def start(self) -> None:
        """Start the tick loop (and watcher) on the running event loop."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        self._stop_event = asyncio.Event()
        self._tasks = [asyncio.create_task(self.run(), name="mountmux-reload")]
        if self.watch:
            self._tasks.append(
                asyncio.create_task(self.watch_file(), name="mountmux-watch")
            )

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        if not self._tasks:
            return
        assert self._stop_event is not None and self._wakeup is not None
        self._stop_event.set()
        self._wakeup.set()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._loop = None
