"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``.

    ``TASKSYNC_DATA_DIR`` in the environment wins over the platform default.
    """

    platform_id = (platform or sys.platform).lower()
    environ = dict(os.environ if env is None else env)
    override = environ.get("TASKSYNC_DATA_DIR")
    if override:
        return Path(override).expanduser()

    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return base.expanduser() / sanitized


APP_NAME = "TaskSync"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "tasks.db"
CONFIG_PATH = DATA_DIR / "config.json"
LOG_PATH = LOG_DIR / "sync.log"

DEFAULT_API_BASE_URL = "http://localhost:3000/api"
DEFAULT_BATCH_SIZE = 50
MAX_RETRIES = 3


@dataclass(frozen=True)
class SyncSettings:
    api_base_url: str = DEFAULT_API_BASE_URL
    batch_size: int = DEFAULT_BATCH_SIZE
    max_retries: int = MAX_RETRIES
    connectivity_timeout: float = 5.0
    request_timeout: float = 30.0
    health_path: str = "/health"
    batch_path: str = "/sync/batch"


@dataclass(frozen=True)
class LogSettings:
    path: Path = LOG_PATH
    max_bytes: int = 1_000_000
    backup_count: int = 3
    format: str = "%(asctime)s [%(levelname)s] %(message)s"


LOGGING = LogSettings()


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _positive_float(value: Any) -> Optional[float]:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def load_sync_settings(
    env: Optional[Mapping[str, str]] = None,
    config: Any = None,
) -> SyncSettings:
    """Build :class:`SyncSettings` from environment, ``config.json`` and defaults.

    ``config`` is an :class:`storage.config.AppConfig`; when omitted it is read
    from ``CONFIG_PATH``. The environment takes precedence over the file.
    """

    environ = os.environ if env is None else env
    if config is None:
        from storage.config import load_config

        config = load_config()

    settings = SyncSettings()

    base_url = environ.get("API_BASE_URL") or getattr(config, "api_base_url", None)
    if base_url:
        settings = replace(settings, api_base_url=str(base_url).rstrip("/"))

    batch_size = _positive_int(environ.get("SYNC_BATCH_SIZE"))
    if batch_size is None:
        batch_size = _positive_int(getattr(config, "batch_size", None))
    if batch_size is not None:
        settings = replace(settings, batch_size=batch_size)

    request_timeout = _positive_float(environ.get("SYNC_REQUEST_TIMEOUT"))
    if request_timeout is not None:
        settings = replace(settings, request_timeout=request_timeout)

    return settings


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "LOG_PATH",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_BATCH_SIZE",
    "MAX_RETRIES",
    "LOGGING",
    "LogSettings",
    "SyncSettings",
    "get_default_data_dir",
    "load_sync_settings",
]
