"""Shared constants for mountmux.

Defaults and numeric caps used across modules are defined here.
No magic numbers in other modules: import from here.
"""

# ─── Fstab schema ────────────────────────────────────────────────────────────

# Top-level key holding the ``source -> mount point`` mapping in the fstab file.
FSTAB_KEY: str = "Fstab"

# The mount point every route table binds, with or without a configured entry.
ROOT_MOUNT: str = "/"

# ─── Reload scheduling ───────────────────────────────────────────────────────

# Seconds between scheduled reloads. 0 disables automatic reload.
DEFAULT_RELOAD_PERIOD_S: float = 10.0

# Reload every tick, or only when the fstab file's mtime moved.
RELOAD_POLICY_ALWAYS: str = "always"
RELOAD_POLICY_ON_CHANGE: str = "on_change"
VALID_RELOAD_POLICIES: frozenset[str] = frozenset(
    {RELOAD_POLICY_ALWAYS, RELOAD_POLICY_ON_CHANGE}
)

# ─── Scheme classification ───────────────────────────────────────────────────

# Source schemes forwarded by the reverse proxy unless the operator says otherwise.
DEFAULT_PROXY_SCHEMES: frozenset[str] = frozenset({"http", "https"})

# ─── Upstream connection pool ────────────────────────────────────────────────

# One pooled client serves every proxy route across reloads.
POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds

# ─── Headers ─────────────────────────────────────────────────────────────────

REQUEST_ID_HEADER: str = "X-Mountmux-Request-ID"

# ─── Host application ────────────────────────────────────────────────────────

HEALTH_PATH: str = "/_mountmux/health"
DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 8080
DEFAULT_FSTAB_PATH: str = "./fstab/fstab.json"
