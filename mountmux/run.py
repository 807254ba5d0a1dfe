"""Programmatic uvicorn entry point for mountmux.

Usage:
    python -m mountmux.run [--config PATH]
    mountmux [--config PATH]          # via pyproject.toml [project.scripts]

Reads host and port from the loaded settings (127.0.0.1:8080 by default).
"""

from __future__ import annotations

import argparse
import os
from typing import Optional, Sequence

import uvicorn

from mountmux.config import load_settings

# HTTP keep-alive timeout in seconds.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="mountmux", description=__doc__.splitlines()[0])
    parser.add_argument("--config", help="settings file (default: search .mountmux/config.yaml)")
    args = parser.parse_args(argv)

    if args.config:
        # the lifespan loads settings again in the server process
        os.environ["MOUNTMUX_CONFIG"] = args.config
    settings = load_settings(args.config)

    uvicorn.run(
        "mountmux.main:app",
        host=settings.server.host,
        port=settings.server.port,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
