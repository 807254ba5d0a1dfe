"""Named local handler pool.

Handlers are Starlette request endpoints: ``def`` or ``async def`` taking a
``Request`` and returning a ``Response``. The host application registers them
under an explicit identity; an fstab source with no scheme names one of these
identities.

Registrations live as long as the router: they survive every reload and are
never removed.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from starlette.requests import Request
from starlette.responses import Response

from mountmux.utils.logger import get_logger

logger = get_logger(__name__)

Handler = Callable[[Request], Union[Response, Awaitable[Response]]]


class HandlerRegistry:
    """Thread-safe identity → handler pool.

    The lock is supplied by the owner so that registration and table
    rebuilds serialize on the same write lock; a build always works from a
    ``snapshot()`` taken under it.
    """

    def __init__(self, lock: Optional[Any] = None) -> None:
        self._handlers: dict[str, Handler] = {}
        self._lock = lock if lock is not None else threading.RLock()

    def register(self, identity: str, callback: Handler) -> bool:
        """Insert or replace the handler for ``identity``.

        Returns True when the identity was new, False when it replaced an
        existing registration.

        Raises:
            ValueError: ``identity`` is empty or contains ``://``.
            TypeError: ``callback`` is not callable.
        """
        if not isinstance(identity, str) or not identity:
            raise ValueError("handler identity must be a non-empty string")
        if "://" in identity:
            raise ValueError(f"handler identity must not look like a URI: {identity!r}")
        if not callable(callback):
            raise TypeError(f"handler for {identity!r} is not callable")

        with self._lock:
            created = identity not in self._handlers
            self._handlers[identity] = callback

        logger.info(
            "Handler registered" if created else "Handler replaced",
            identity=identity,
        )
        return created

    def get(self, identity: str) -> Optional[Handler]:
        with self._lock:
            return self._handlers.get(identity)

    def snapshot(self) -> Mapping[str, Handler]:
        """Return a read-only copy of the current registrations."""
        with self._lock:
            return MappingProxyType(dict(self._handlers))

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._handlers

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)
