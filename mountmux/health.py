"""Health endpoint for the mountmux host application.

  GET /_mountmux/health: 503 before the router is ready, 200 afterwards.

Response body (200)::

    {
      "status": "ok" | "degraded",
      "fstab": "./fstab/fstab.json",
      "generation": 3,
      "mounts": [{"mount_point": "/mnt/a", "kind": "proxy", "source": "http://..."}],
      "reload": {"period": 10.0, "policy": "always", "last_error": null, ...}
    }

``degraded`` means the most recent reload failed and an older table is live.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from mountmux.constants import HEALTH_PATH
from mountmux.router import FstabRouter

router = APIRouter(tags=["health"])


@router.get(HEALTH_PATH)
async def health(request: Request) -> dict[str, Any]:
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "mountmux is starting up"},
        )

    fstab_router: FstabRouter = request.app.state.router
    table = fstab_router.table
    state = fstab_router.state

    return {
        "status": "ok" if state.last_error is None else "degraded",
        "fstab": fstab_router.fstab_path,
        "generation": table.generation,
        "mounts": [
            {
                "mount_point": route.mount_point,
                "kind": route.kind.value,
                "source": route.source,
            }
            for route in table.routes
        ],
        "reload": state.as_dict(),
    }
