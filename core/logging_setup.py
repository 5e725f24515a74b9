from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from core.settings import LOGGING, LogSettings


SYNC_LOGGER_NAME = "tasksync.sync"


def ensure_logger(settings: Optional[LogSettings] = None) -> logging.Logger:
    """Return the sync logger, attaching the rotating file handler once."""

    cfg = settings or LOGGING
    logger = logging.getLogger(SYNC_LOGGER_NAME)
    if not logger.handlers:
        Path(cfg.path).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            cfg.path,
            maxBytes=cfg.max_bytes,
            backupCount=cfg.backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(cfg.format))
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"{SYNC_LOGGER_NAME}.{component}")


__all__ = ["SYNC_LOGGER_NAME", "ensure_logger", "get_logger"]
