"""Plain data carried between the sync components and returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from datetime_utils import to_wire


ITEM_SUCCESS = "success"
ITEM_CONFLICT = "conflict"
ITEM_ERROR = "error"


@dataclass
class ItemResult:
    """One entry of ``processed_items`` in a batch sync response."""

    client_id: str
    status: str
    resolved_data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@dataclass
class SyncError:
    task_id: str
    operation: str
    error: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "operation": self.operation,
            "error": self.error,
            "timestamp": to_wire(self.timestamp),
        }


@dataclass
class SyncResult:
    synced_items: int = 0
    failed_items: int = 0
    errors: List[SyncError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_items == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "synced_items": self.synced_items,
            "failed_items": self.failed_items,
            "errors": [err.to_dict() for err in self.errors],
        }


__all__ = [
    "ITEM_CONFLICT",
    "ITEM_ERROR",
    "ITEM_SUCCESS",
    "ItemResult",
    "SyncError",
    "SyncResult",
]
