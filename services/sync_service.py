from __future__ import annotations

import threading
from collections import defaultdict, deque
from typing import Any, Deque, Dict, Mapping, Optional, Sequence

import requests
from sqlalchemy.exc import SQLAlchemyError

from core.logging_setup import ensure_logger
from core.settings import SyncSettings, load_sync_settings
from datetime_utils import to_wire, utc_now
from models.sync_result import (
    ITEM_CONFLICT,
    ITEM_ERROR,
    ITEM_SUCCESS,
    ItemResult,
    SyncError,
    SyncResult,
)
from services import conflict_resolver
from services.batch_dispatcher import BatchDispatcher, iter_batches
from services.connectivity import ConnectivityChecker
from services.errors import ConnectivityError, ItemError, SyncInProgressError, TransportError
from services.outbox_queue import OutboxQueue, QueueEntry
from services.retry_policy import RetryPolicy
from storage.sync_store import SyncStore


def _server_id(data: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not data:
        return None
    value = data.get("server_id") or data.get("id")
    return str(value) if value else None


class SyncService:
    """Runs one outbox upload: health check, drain, dispatch in batches, reconcile."""

    def __init__(
        self,
        store: SyncStore,
        queue: OutboxQueue,
        checker: ConnectivityChecker,
        dispatcher: BatchDispatcher,
        policy: RetryPolicy,
        *,
        batch_size: int = 50,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.queue = queue
        self.checker = checker
        self.dispatcher = dispatcher
        self.policy = policy
        self.batch_size = batch_size
        self.logger = ensure_logger()
        self._run_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        store: SyncStore,
        settings: Optional[SyncSettings] = None,
        *,
        http: Optional[requests.Session] = None,
    ) -> "SyncService":
        cfg = settings or load_sync_settings()
        http = http or requests.Session()
        queue = OutboxQueue(store, max_retries=cfg.max_retries)
        return cls(
            store,
            queue,
            ConnectivityChecker(
                cfg.api_base_url,
                timeout=cfg.connectivity_timeout,
                health_path=cfg.health_path,
                http=http,
            ),
            BatchDispatcher(
                cfg.api_base_url,
                timeout=cfg.request_timeout,
                batch_path=cfg.batch_path,
                http=http,
            ),
            RetryPolicy(queue, store, max_retries=cfg.max_retries),
            batch_size=cfg.batch_size,
        )

    # ------------------------------------------------------------------
    # Public API
    def check_connectivity(self) -> bool:
        return self.checker.is_reachable()

    def run(self) -> SyncResult:
        """Guarded entry point: one run at a time, aborted when offline."""
        if not self._run_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync run is already in progress")
        try:
            if not self.check_connectivity():
                self.logger.warning("Sync aborted: server unreachable")
                raise ConnectivityError()
            return self._sync()
        finally:
            self._run_lock.release()

    def sync(self) -> SyncResult:
        if not self._run_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync run is already in progress")
        try:
            return self._sync()
        finally:
            self._run_lock.release()

    def retry_failed(self) -> int:
        """Give exhausted items a fresh retry budget; returns the task count."""
        task_ids = self.queue.requeue_failed()
        if task_ids:
            self.logger.info("Requeued failed items for %d task(s)", len(task_ids))
        return len(task_ids)

    def status(self) -> Dict[str, Any]:
        return {
            "pending_items": self.queue.count(),
            "failed_items": self.queue.count_failed(),
            "last_synced_at": to_wire(self.store.last_synced_at()),
            "connectivity": self.check_connectivity(),
        }

    # ------------------------------------------------------------------
    # Run internals
    def _sync(self) -> SyncResult:
        result = SyncResult()
        entries = self.queue.drain_ordered()
        if not entries:
            return result

        self.logger.info("Sync started: %d queued item(s)", len(entries))
        for batch in iter_batches(entries, self.batch_size):
            try:
                responses = self.dispatcher.send_batch(batch)
            except TransportError as exc:
                self.logger.warning("Batch of %d item(s) failed: %s", len(batch), exc)
                for entry in batch:
                    self._fail(entry, exc, result)
                continue
            self._reconcile(batch, responses, result)

        self.logger.info(
            "Sync finished: %d synced, %d failed",
            result.synced_items,
            result.failed_items,
        )
        return result

    def _reconcile(
        self,
        batch: Sequence[QueueEntry],
        responses: Sequence[ItemResult],
        result: SyncResult,
    ) -> None:
        by_client: Dict[str, Deque[ItemResult]] = defaultdict(deque)
        for item in responses:
            by_client[item.client_id].append(item)

        for entry in batch:
            pending = by_client.get(entry.task_id)
            if not pending:
                self._fail(entry, ItemError("No result returned by server"), result)
                continue
            self._apply(entry, pending.popleft(), result)

        for client_id, leftovers in by_client.items():
            if leftovers:
                self.logger.warning(
                    "Ignoring %d result(s) for %s not matching the dispatched batch",
                    len(leftovers),
                    client_id,
                )

    def _apply(self, entry: QueueEntry, item: ItemResult, result: SyncResult) -> None:
        try:
            self._handle(entry, item)
        except ItemError as exc:
            self._fail(entry, exc, result)
        except (ValueError, SQLAlchemyError) as exc:
            # A bad item never stops the rest of the batch.
            self.logger.warning("Could not apply result for %s: %s", entry.task_id, exc)
            self._fail(entry, ItemError(str(exc)), result)
        else:
            result.synced_items += 1

    def _handle(self, entry: QueueEntry, item: ItemResult) -> None:
        if item.status == ITEM_SUCCESS:
            self._confirm(entry, item.resolved_data)
        elif item.status == ITEM_CONFLICT:
            if not item.resolved_data:
                raise ItemError("Conflict reported without server data")
            self._resolve_conflict(entry, item.resolved_data)
        elif item.status == ITEM_ERROR:
            raise ItemError(item.error or "Unknown error")
        else:
            raise ItemError(f"Unexpected result status {item.status!r}")

    def _resolve_conflict(self, entry: QueueEntry, server: Dict[str, Any]) -> None:
        local = self.store.get_task(entry.task_id, include_deleted=True)
        if local is None or conflict_resolver.resolve(local, server) is server:
            self.logger.debug("Conflict on %s: server version wins", entry.task_id)
            self.store.save_task_version(entry.task_id, server)
        else:
            self.logger.debug("Conflict on %s: local version wins", entry.task_id)
        self._confirm(entry, server)

    def _confirm(self, entry: QueueEntry, server_data: Optional[Mapping[str, Any]]) -> None:
        # Task state first, queue removal last: a crash in between resends the item.
        self.store.mark_synced(entry.task_id, _server_id(server_data), through=entry.seq)
        self.queue.remove(entry.task_id, through=entry.seq)

    def _fail(self, entry: QueueEntry, error: BaseException, result: SyncResult) -> None:
        outcome = self.policy.on_failure(entry, error)
        result.failed_items += 1
        result.errors.append(
            SyncError(
                task_id=entry.task_id,
                operation=entry.operation,
                error=outcome.message,
                timestamp=utc_now(),
            )
        )


__all__ = ["SyncService"]
