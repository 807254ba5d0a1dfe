"""mountmux FastAPI host application factory + lifespan lifecycle.

This module implements:
  - create_app(): testable application factory
  - lifespan    : @asynccontextmanager startup/shutdown sequence
  - /_mountmux/health: delegated to mountmux/health.py
  - /           : every other path goes to the live mount table
  - app = create_app(): module-level instance for uvicorn

Startup sequence:
  1. load_settings()       → app.state.settings (unless injected)
  2. configure_logging()   from settings.logging
  3. FstabRouter(...)      → app.state.router (first fstab load happens here)
  4. router.start()        → background reload loop
  5. app.state.ready = True

Shutdown sequence (reverse):
  app.state.ready = False → router.stop() (loop cancelled, client closed)
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, MutableMapping, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from mountmux.config import Settings, load_settings
from mountmux.health import router as health_router
from mountmux.router import FstabRouter
from mountmux.routing.builder import SchemePolicy
from mountmux.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
# Import-time defaults; the lifespan reconfigures from settings.
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Mount table dispatch ─────────────────────────────────────────────────────


async def dispatch_to_router(
    scope: MutableMapping[str, Any], receive: Any, send: Any
) -> None:
    """Forward to the live router; 503 until the lifespan has created it."""
    fstab_router: Optional[FstabRouter] = getattr(scope["app"].state, "router", None)
    if fstab_router is None or not getattr(scope["app"].state, "ready", False):
        response = JSONResponse(
            status_code=503,
            content={"status": "starting", "message": "mountmux is starting up"},
        )
        await response(scope, receive, send)
        return
    await fstab_router.app(scope, receive, send)


def build_router(settings: Settings) -> FstabRouter:
    return FstabRouter(
        settings.fstab,
        reload_period=settings.reload.period,
        policy=settings.reload.policy,
        scheme_policy=SchemePolicy(proxy_schemes=settings.proxy_schemes),
        watch=settings.reload.watch,
    )


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Optional[Settings] = getattr(app.state, "settings", None)
    if settings is None:
        settings = load_settings()
        app.state.settings = settings
    configure_logging(log_level=settings.logging.level, json_output=settings.logging.json)

    fstab_router: Optional[FstabRouter] = getattr(app.state, "router", None)
    if fstab_router is None:
        fstab_router = build_router(settings)
        app.state.router = fstab_router

    await fstab_router.start()
    app.state.ready = True
    logger.info(
        "mountmux ready",
        fstab=fstab_router.fstab_path,
        mounts=fstab_router.table.mount_points,
        reload_period=fstab_router.state.period,
    )

    try:
        yield
    finally:
        app.state.ready = False
        await fstab_router.stop()
        logger.info("mountmux stopped")


# ─── Application factory ──────────────────────────────────────────────────────


def create_app(
    settings: Optional[Settings] = None,
    router: Optional[FstabRouter] = None,
) -> FastAPI:
    """Create the host FastAPI application.

    Args:
        settings: Pre-loaded settings; loaded from disk at startup when None.
        router:   Pre-built router (tests, embedding); built from settings when None.
    """
    application = FastAPI(
        title="mountmux",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.ready = False
    if settings is not None:
        application.state.settings = settings
    if router is not None:
        application.state.router = router

    application.include_router(health_router)
    application.mount("/", dispatch_to_router)
    return application


app = create_app()
