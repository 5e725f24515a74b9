"""Persisted sync configuration (``config.json``).

Only the server base URL and the upload batch size live here. Values are
checked on the way in and on the way out, so a hand-edited file with a bad
entry falls back to the defaults for that entry instead of breaking a run.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from core.logging_setup import get_logger
from core.settings import CONFIG_PATH


logger = get_logger("config")


@dataclass
class AppConfig:
    api_base_url: Optional[str] = None
    batch_size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in vars(self).items() if value is not None}


def normalize_base_url(value: Any) -> Optional[str]:
    """``http(s)://host[/path]`` without a trailing slash, else ``None``."""

    if not isinstance(value, str):
        return None
    url = value.strip().rstrip("/")
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        return None
    return url


def valid_batch_size(value: Any) -> Optional[int]:
    # bool is an int subclass; ``true`` in JSON is not a batch size.
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


def _read(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Optional[Path] = None) -> AppConfig:
    target = path or CONFIG_PATH
    raw = _read(target)
    config = AppConfig(
        api_base_url=normalize_base_url(raw.get("api_base_url")),
        batch_size=valid_batch_size(raw.get("batch_size")),
    )
    for key in ("api_base_url", "batch_size"):
        if raw.get(key) is not None and getattr(config, key) is None:
            logger.warning("Ignoring invalid %s in %s: %r", key, target, raw[key])
    return config


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(json.dumps(config.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            tmp.unlink()


def update_config(
    path: Optional[Path] = None,
    *,
    api_base_url: Optional[str] = None,
    batch_size: Optional[int] = None,
) -> AppConfig:
    """Merge the given values into ``config.json``; ``None`` leaves a value as is.

    Raises ``ValueError`` for a URL that is not http(s) or a non-positive
    batch size; nothing is written in that case.
    """

    target = path or CONFIG_PATH
    config = load_config(target)
    if api_base_url is not None:
        url = normalize_base_url(api_base_url)
        if url is None:
            raise ValueError(f"Invalid API base URL: {api_base_url!r}")
        config.api_base_url = url
    if batch_size is not None:
        size = valid_batch_size(batch_size)
        if size is None:
            raise ValueError("batch size must be a positive integer")
        config.batch_size = size
    save_config(config, target)
    logger.info("Saved sync config to %s", target)
    return config


__all__ = ["AppConfig", "load_config", "normalize_base_url", "save_config", "update_config", "valid_batch_size"]
