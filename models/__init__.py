"""ORM models and sync data exposed by the TaskSync client."""
from .task import SyncStatus, Task
from .sync_queue import Operation, SyncQueueItem
from .sync_result import ItemResult, SyncError, SyncResult

__all__ = [
    "ItemResult",
    "Operation",
    "SyncError",
    "SyncQueueItem",
    "SyncResult",
    "SyncStatus",
    "Task",
]
