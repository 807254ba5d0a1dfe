"""ULID generation for request correlation.

Every proxied request gets a 26-character ULID that is bound to the structured
log context and forwarded upstream as ``X-Mountmux-Request-ID``, so a line in
the router log can be matched to a line in the origin's log.

Uses the ``python-ulid`` library: do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Example::

        request_id = generate_ulid()
        # "01KJ0JRVHYA7KX32VPN5ZSCTMV"
        assert len(request_id) == 26
    """
    return str(ULID())
