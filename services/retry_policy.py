from __future__ import annotations

from dataclasses import dataclass

from core.logging_setup import get_logger
from core.settings import MAX_RETRIES
from services.errors import PERMANENT_FAILURE
from services.outbox_queue import OutboxQueue, QueueEntry
from storage.sync_store import SyncStore


@dataclass
class FailureOutcome:
    retry_count: int
    permanent: bool
    message: str


class RetryPolicy:
    """Counts failed attempts per queue item and escalates at the cap.

    Every failure persists ``retry_count + 1``. When the new count reaches
    ``max_retries`` the item is tagged ``PERMANENT_FAILURE`` and its task is
    marked ``error``; regular runs then skip the item until it is requeued.
    """

    def __init__(self, queue: OutboxQueue, store: SyncStore, max_retries: int = MAX_RETRIES):
        self.queue = queue
        self.store = store
        self.max_retries = max_retries
        self.logger = get_logger("retry")

    def on_failure(self, entry: QueueEntry, error: BaseException | str) -> FailureOutcome:
        message = str(error) or "Unknown error"
        retry_count = entry.retry_count + 1
        permanent = retry_count >= self.max_retries
        if permanent:
            self.store.mark_error(entry.task_id)
            stored = PERMANENT_FAILURE
            self.logger.info(
                "Item %s (%s %s) exhausted %d attempts: %s",
                entry.id,
                entry.operation,
                entry.task_id,
                retry_count,
                message,
            )
        else:
            stored = message
        if not self.queue.record_failure(entry, retry_count, stored):
            self.logger.warning("Queue item %s vanished before its failure was recorded", entry.id)
        entry.retry_count = retry_count
        entry.error_message = stored
        return FailureOutcome(retry_count=retry_count, permanent=permanent, message=message)


__all__ = ["FailureOutcome", "RetryPolicy"]
