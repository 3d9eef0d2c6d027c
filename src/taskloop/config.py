# src/taskloop/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Malformed values fall back to defaults instead of crashing at import time.
- Optional config_local.py for safe local overrides (never committed).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

ENV_PREFIX = "TASKLOOP"

logger = logging.getLogger(__name__)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r; using %s", name, raw, default)
        return default


def _env_opt_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r; ignoring", name, raw)
        return None


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_dir: Path

    # ---- Dispatch loop ----
    polling_interval_ms: int
    saturated_poll_ms: int
    max_concurrency: int

    # ---- Health reporter ----
    health_port: Optional[int]
    health_host: str

    # ---- Memory backend ----
    reject_policy: str
    max_rejections: Optional[int]

    @property
    def polling_interval(self) -> float:
        return self.polling_interval_ms / 1000.0

    @property
    def saturated_poll_interval(self) -> float:
        return self.saturated_poll_ms / 1000.0

    @staticmethod
    def from_env() -> "Settings":
        return _normalized(
            Settings(
                app_name=_env(_k("APP_NAME"), "taskloop"),
                log_level=_env(_k("LOG_LEVEL"), "INFO"),
                log_dir=_env_path(_k("LOG_DIR"), Path(".local/taskloop")),
                polling_interval_ms=_env_int(_k("POLLING_INTERVAL_MS"), 1000),
                saturated_poll_ms=_env_int(_k("SATURATED_POLL_MS"), 100),
                max_concurrency=_env_int(_k("MAX_CONCURRENCY"), 1),
                health_port=_env_opt_int(_k("HEALTH_PORT")),
                health_host=_env(_k("HEALTH_HOST"), "127.0.0.1"),
                reject_policy=_env(_k("REJECT_POLICY"), "requeue"),
                max_rejections=_env_opt_int(_k("MAX_REJECTIONS")),
            )
        )


def _normalized(settings: Settings) -> Settings:
    """Clamp values from any source (env, config_local.py) into their valid ranges."""
    polling_interval_ms = settings.polling_interval_ms
    if not isinstance(polling_interval_ms, int) or polling_interval_ms <= 0:
        polling_interval_ms = 1000
    saturated_poll_ms = settings.saturated_poll_ms
    if not isinstance(saturated_poll_ms, int) or saturated_poll_ms <= 0:
        saturated_poll_ms = 100
    max_concurrency = settings.max_concurrency
    if not isinstance(max_concurrency, int) or max_concurrency < 1:
        max_concurrency = 1

    health_port = settings.health_port
    if health_port is not None and not (isinstance(health_port, int) and 0 < health_port < 65536):
        logger.warning("Health port %r out of range; health reporter disabled", health_port)
        health_port = None

    max_rejections = settings.max_rejections
    if max_rejections is not None and (not isinstance(max_rejections, int) or max_rejections < 1):
        max_rejections = None

    return replace(
        settings,
        app_name=str(settings.app_name or "").strip() or "taskloop",
        log_level=str(settings.log_level or "").strip() or "INFO",
        polling_interval_ms=polling_interval_ms,
        saturated_poll_ms=saturated_poll_ms,
        max_concurrency=max_concurrency,
        health_port=health_port,
        health_host=str(settings.health_host or "").strip() or "127.0.0.1",
        reject_policy=str(settings.reject_policy or "").strip().lower() or "requeue",
        max_rejections=max_rejections,
    )


def _apply_local_overrides(settings: Settings) -> Settings:
    """
    Optional local overrides (never committed).

    Prefer env vars / .env; config_local.py is only for safe, explicit overrides.
    Overrides go through the same range checks as environment values.
    """
    try:
        import config_local as _config_local  # type: ignore
    except ImportError:
        return settings

    overrides = {}
    for name in ("MAX_CONCURRENCY", "POLLING_INTERVAL_MS", "HEALTH_PORT", "LOG_LEVEL"):
        if hasattr(_config_local, name):
            overrides[name.lower()] = getattr(_config_local, name)
    return _normalized(replace(settings, **overrides)) if overrides else settings


SETTINGS = _apply_local_overrides(Settings.from_env())


def get_settings() -> Settings:
    return SETTINGS
