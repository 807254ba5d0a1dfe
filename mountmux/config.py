"""Settings loading for the mountmux host application.

Reads `.mountmux/config.yaml` (or `~/.mountmux/config.yaml`).
Raises SystemExit on parse errors or invalid values.
If no settings file is found, returns default values (safe to run without one).

The settings file describes the host process; the mount table itself lives in
the fstab file it points at::

    fstab: ./fstab/fstab.json
    reload:
      period: 10          # seconds, 0 disables automatic reload
      policy: always      # always | on_change
      watch: false        # also reload on file change events
    proxy_schemes: [http, https]
    server:
      host: 127.0.0.1
      port: 8080
    logging:
      level: INFO
      json: true

Settings search order:
  1. `config_path` argument (if provided: for testing or explicit override)
  2. MOUNTMUX_CONFIG environment variable (if set)
  3. `.mountmux/config.yaml` (working directory)
  4. `~/.mountmux/config.yaml` (home directory)

Environment variable overrides (applied last):
  MOUNTMUX_FSTAB         : overrides fstab
  MOUNTMUX_PORT          : overrides server.port
  MOUNTMUX_RELOAD_PERIOD : overrides reload.period
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from mountmux.constants import (
    DEFAULT_FSTAB_PATH,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_PROXY_SCHEMES,
    DEFAULT_RELOAD_PERIOD_S,
    RELOAD_POLICY_ALWAYS,
    VALID_RELOAD_POLICIES,
)
from mountmux.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATHS = [
    ".mountmux/config.yaml",
    os.path.expanduser("~/.mountmux/config.yaml"),
]

# Schemes the proxy transport can actually speak; others only with a warning.
SUPPORTED_PROXY_SCHEMES: frozenset[str] = frozenset({"http", "https"})


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ReloadSettings:
    period: float = DEFAULT_RELOAD_PERIOD_S
    policy: str = RELOAD_POLICY_ALWAYS
    watch: bool = False


@dataclass
class ServerSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class LoggingSettings:
    level: str = "INFO"
    json: bool = True


@dataclass
class Settings:
    """Root settings object. All fields have safe defaults."""

    fstab: str = DEFAULT_FSTAB_PATH
    reload: ReloadSettings = field(default_factory=ReloadSettings)
    proxy_schemes: frozenset[str] = DEFAULT_PROXY_SCHEMES
    server: ServerSettings = field(default_factory=ServerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    path: Optional[str] = None  # settings file the values came from

    @classmethod
    def defaults(cls) -> "Settings":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Settings":
        """Construct Settings from a parsed YAML dict; unknown keys are ignored.

        Raises:
            SystemExit(1): On an invalid reload period/policy or proxy scheme list.
        """
        reload_raw = raw.get("reload") or {}
        reload_settings = ReloadSettings(
            period=_parse_period(reload_raw.get("period", DEFAULT_RELOAD_PERIOD_S), "reload.period"),
            policy=reload_raw.get("policy", RELOAD_POLICY_ALWAYS),
            watch=bool(reload_raw.get("watch", False)),
        )
        if reload_settings.policy not in VALID_RELOAD_POLICIES:
            _fail(
                f"Invalid reload.policy: '{reload_settings.policy}'. "
                f"Supported values: {sorted(VALID_RELOAD_POLICIES)}."
            )

        schemes_raw = raw.get("proxy_schemes", sorted(DEFAULT_PROXY_SCHEMES))
        if not isinstance(schemes_raw, list) or not all(isinstance(s, str) for s in schemes_raw):
            _fail("proxy_schemes must be a list of scheme names.")
        proxy_schemes = frozenset(s.lower() for s in schemes_raw)
        unsupported = proxy_schemes - SUPPORTED_PROXY_SCHEMES
        if unsupported:
            logger.warning(
                "Proxy schemes the upstream client cannot speak, requests will get 502",
                schemes=sorted(unsupported),
            )

        server_raw = raw.get("server") or {}
        server = ServerSettings(
            host=server_raw.get("host", DEFAULT_HOST),
            port=server_raw.get("port", DEFAULT_PORT),
        )

        logging_raw = raw.get("logging") or {}
        logging_settings = LoggingSettings(
            level=str(logging_raw.get("level", "INFO")).upper(),
            json=bool(logging_raw.get("json", True)),
        )

        return cls(
            fstab=raw.get("fstab", DEFAULT_FSTAB_PATH),
            reload=reload_settings,
            proxy_schemes=proxy_schemes,
            server=server,
            logging=logging_settings,
            path=path,
        )


# ─── Loading ─────────────────────────────────────────────────────────────────


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load and validate mountmux settings.

    If no file is found at any search path, returns default Settings (not an
    error). If a file is found but invalid, writes the error to stderr and
    raises SystemExit(1). Environment overrides are applied in both cases.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("MOUNTMUX_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No settings file found, using defaults", searched=search_paths)
        settings = Settings.defaults()
        _apply_env_overrides(settings)
        return settings

    logger.info("Loading settings", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(f"Failed to parse {found_path}: {exc}")
    except OSError as exc:
        _fail(f"Could not read {found_path}: {exc}")

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        _fail(f"{found_path} must be a YAML mapping at the top level.")

    settings = Settings.from_dict(raw, path=found_path)
    _apply_env_overrides(settings)

    if settings.server.host == "0.0.0.0":
        logger.warning(
            "mountmux binds on 0.0.0.0 (all interfaces); every mount is network-reachable"
        )

    logger.info(
        "Settings loaded",
        path=found_path,
        fstab=settings.fstab,
        reload_period=settings.reload.period,
        reload_policy=settings.reload.policy,
    )
    return settings


def _apply_env_overrides(settings: Settings) -> None:
    """Apply MOUNTMUX_* environment overrides in place."""
    env_fstab = os.environ.get("MOUNTMUX_FSTAB")
    if env_fstab:
        settings.fstab = env_fstab

    env_port = os.environ.get("MOUNTMUX_PORT")
    if env_port is not None:
        try:
            settings.server.port = int(env_port)
        except ValueError:
            _fail(f"MOUNTMUX_PORT environment variable is not a valid integer: '{env_port}'")

    env_period = os.environ.get("MOUNTMUX_RELOAD_PERIOD")
    if env_period is not None:
        settings.reload.period = _parse_period(env_period, "MOUNTMUX_RELOAD_PERIOD")


def _parse_period(value: object, name: str) -> float:
    try:
        period = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        _fail(f"{name} must be a number of seconds: '{value}'")
    if period < 0:
        _fail(f"{name} must be >= 0: '{value}'")
    return period


def _fail(message: str) -> NoReturn:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)
