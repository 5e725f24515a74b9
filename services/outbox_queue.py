from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlmodel import Session

from datetime_utils import ensure_utc, to_wire, utc_now_precise
from models.sync_queue import Operation, SyncQueueItem
from storage.sync_store import SyncStore


VALID_OPS = {op.value for op in Operation}


@dataclass
class QueueEntry:
    id: str
    task_id: str
    operation: str
    data: Dict[str, Any]
    created_at: datetime
    retry_count: int
    error_message: Optional[str]
    seq: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "item_id": self.id,
            "task_id": self.task_id,
            "operation": self.operation,
            "data": self.data,
            "created_at": to_wire(self.created_at),
            "retry_count": self.retry_count,
        }


def _entry(row: SyncQueueItem) -> QueueEntry:
    try:
        data = json.loads(row.data)
    except json.JSONDecodeError:
        data = {}
    return QueueEntry(
        id=row.id,
        task_id=row.task_id,
        operation=row.operation,
        data=data if isinstance(data, dict) else {},
        created_at=ensure_utc(row.created_at),
        retry_count=row.retry_count,
        error_message=row.error_message,
        seq=row.seq,
    )


def _record(task_id: str, operation: str, snapshot: Mapping[str, Any]) -> SyncQueueItem:
    if operation not in VALID_OPS:
        raise ValueError(f"Unsupported operation: {operation}")
    return SyncQueueItem(
        task_id=task_id,
        operation=operation,
        data=json.dumps(dict(snapshot), ensure_ascii=False, default=str),
        # Microseconds keep creation order stable between quick successive mutations.
        created_at=utc_now_precise(),
        retry_count=0,
    )


class OutboxQueue:
    """Durable, ordered log of local mutations awaiting upload."""

    def __init__(self, store: SyncStore, max_retries: Optional[int] = None):
        self.store = store
        self.max_retries = max_retries

    def enqueue(
        self,
        task_id: str,
        operation: str,
        snapshot: Mapping[str, Any],
        *,
        session: Optional[Session] = None,
    ) -> QueueEntry:
        """Append an item; committed on return unless ``session`` is given.

        With ``session`` the item joins the caller's transaction and is durable
        once that session commits.
        """
        record = _record(task_id, operation, snapshot)
        if session is not None:
            self.store.stage_queue_item(session, record)
            return _entry(record)
        return _entry(self.store.add_queue_item(record))

    def drain_ordered(self) -> List[QueueEntry]:
        """Pending items, oldest first. Exhausted items are left out."""
        return [_entry(row) for row in self.store.list_queue(self.max_retries)]

    def all_items(self) -> List[QueueEntry]:
        return [_entry(row) for row in self.store.list_queue()]

    def get(self, item_id: str) -> Optional[QueueEntry]:
        row = self.store.get_queue_item(item_id)
        return _entry(row) if row else None

    def remove(self, task_id: str, *, through: Optional[int] = None) -> int:
        """Drop items of ``task_id``; with ``through`` only those up to that ``seq``."""
        return self.store.remove_queue_items(task_id, through=through)

    def record_failure(self, entry: QueueEntry, retry_count: int, error_message: str) -> bool:
        return self.store.record_failure(entry.id, retry_count, error_message)

    def requeue_failed(self) -> List[str]:
        if self.max_retries is None:
            return []
        return self.store.requeue_failed(self.max_retries)

    def count(self) -> int:
        return self.store.count_queue(below=self.max_retries)

    def count_failed(self) -> int:
        if self.max_retries is None:
            return 0
        return self.store.count_queue(at_least=self.max_retries)


__all__ = ["OutboxQueue", "QueueEntry", "VALID_OPS"]
