"""Persistence adapter for tasks and the outbound sync queue."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from datetime_utils import ensure_utc, parse_timestamp, to_wire, utc_now
from models.sync_queue import SyncQueueItem
from models.task import SyncStatus, Task
from storage.db import SessionFactory, get_session


# Fields a server version may overwrite on the local row.
_SERVER_FIELDS = ("title", "description", "completed", "is_deleted", "created_at", "updated_at")
_TIMESTAMP_FIELDS = {"created_at", "updated_at"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _check_server_version(task_id: str, data: Mapping[str, Any], *, creating: bool) -> None:
    """Reject server data the ``tasks`` table cannot hold."""

    if "title" in data or creating:
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValueError(f"Server version of {task_id} has no usable title")
    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise ValueError(f"Server version of {task_id} has an invalid description")


class SyncStore:
    """Wrapper around SQLModel sessions for task rows and queue rows.

    Every write commits before returning.
    """

    def __init__(self, session_factory: SessionFactory = get_session):
        self._session_factory = session_factory

    def session(self) -> Session:
        return self._session_factory()

    # ----- tasks -----
    def get_task(self, task_id: str, *, include_deleted: bool = False) -> Optional[Task]:
        with self._session_factory() as session:
            task = session.get(Task, task_id)
            if task is None or (task.is_deleted and not include_deleted):
                return None
            return task

    def list_tasks(self) -> List[Task]:
        with self._session_factory() as session:
            stmt = (
                select(Task)
                .where(Task.is_deleted == False)  # noqa: E712
                .order_by(Task.created_at.asc())
            )
            return list(session.exec(stmt))

    def list_tasks_needing_sync(self) -> List[Task]:
        with self._session_factory() as session:
            stmt = (
                select(Task)
                .where(Task.is_deleted == False)  # noqa: E712
                .where(Task.sync_status.in_([SyncStatus.PENDING.value, SyncStatus.ERROR.value]))
                .order_by(Task.updated_at.asc())
            )
            return list(session.exec(stmt))

    def save_task_version(self, task_id: str, data: Mapping[str, Any]) -> Task:
        """Overwrite the local row with ``data``, creating it when missing."""

        with self._session_factory() as session:
            task = session.get(Task, task_id)
            _check_server_version(task_id, data, creating=task is None)
            if task is None:
                task = Task(id=task_id, title=data["title"])
            for key in _SERVER_FIELDS:
                if key not in data:
                    continue
                value = data[key]
                if key in _TIMESTAMP_FIELDS:
                    value = parse_timestamp(value)
                    if value is None:
                        continue
                elif key in {"completed", "is_deleted"}:
                    value = _as_bool(value)
                setattr(task, key, value)
            session.add(task)
            session.commit()
            session.refresh(task)
            return task

    def mark_synced(
        self,
        task_id: str,
        server_id: Optional[str] = None,
        *,
        through: Optional[int] = None,
    ) -> Optional[Task]:
        """Record a confirmed sync.

        The task stays ``pending`` while queue items after ``through`` (a queue
        ``seq``; any queue item without it) still reference it.
        """

        with self._session_factory() as session:
            task = session.get(Task, task_id)
            if task is None:
                return None
            stmt = select(SyncQueueItem.seq).where(SyncQueueItem.task_id == task_id)
            if through is not None:
                stmt = stmt.where(SyncQueueItem.seq > through)
            remaining = session.exec(stmt).first() is not None
            task.sync_status = SyncStatus.PENDING.value if remaining else SyncStatus.SYNCED.value
            if server_id:
                task.server_id = str(server_id)
            task.last_synced_at = utc_now()
            session.add(task)
            session.commit()
            session.refresh(task)
            return task

    def mark_error(self, task_id: str) -> None:
        with self._session_factory() as session:
            task = session.get(Task, task_id)
            if task is None:
                return
            task.sync_status = SyncStatus.ERROR.value
            session.add(task)
            session.commit()

    def last_synced_at(self) -> Optional[datetime]:
        with self._session_factory() as session:
            value = session.exec(select(func.max(Task.last_synced_at))).one()
            return ensure_utc(value)

    # ----- queue -----
    def stage_queue_item(self, session: Session, item: SyncQueueItem) -> None:
        """Add ``item`` to a caller-owned session; the caller commits."""

        session.add(item)

    def add_queue_item(self, item: SyncQueueItem) -> SyncQueueItem:
        with self._session_factory() as session:
            session.add(item)
            session.commit()
            session.refresh(item)
            return item

    def list_queue(self, max_retries: Optional[int] = None) -> List[SyncQueueItem]:
        with self._session_factory() as session:
            stmt = select(SyncQueueItem)
            if max_retries is not None:
                stmt = stmt.where(SyncQueueItem.retry_count < max_retries)
            stmt = stmt.order_by(SyncQueueItem.created_at.asc(), SyncQueueItem.seq.asc())
            return list(session.exec(stmt))

    def get_queue_item(self, item_id: str) -> Optional[SyncQueueItem]:
        with self._session_factory() as session:
            return _queue_row(session, item_id)

    def remove_queue_items(self, task_id: str, *, through: Optional[int] = None) -> int:
        """Delete queue items of ``task_id``; with ``through`` only those with ``seq <= through``."""

        with self._session_factory() as session:
            stmt = select(SyncQueueItem).where(SyncQueueItem.task_id == task_id)
            if through is not None:
                stmt = stmt.where(SyncQueueItem.seq <= through)
            removed = 0
            for row in list(session.exec(stmt)):
                session.delete(row)
                removed += 1
            session.commit()
            return removed

    def record_failure(self, item_id: str, retry_count: int, error_message: str) -> bool:
        with self._session_factory() as session:
            row = _queue_row(session, item_id)
            if row is None:
                return False
            row.retry_count = retry_count
            row.error_message = error_message[:1000]
            session.add(row)
            session.commit()
            return True

    def requeue_failed(self, max_retries: int) -> List[str]:
        """Reset exhausted items; returns the affected task ids."""

        with self._session_factory() as session:
            stmt = select(SyncQueueItem).where(SyncQueueItem.retry_count >= max_retries)
            rows = list(session.exec(stmt))
            task_ids: List[str] = []
            for row in rows:
                row.retry_count = 0
                row.error_message = None
                session.add(row)
                if row.task_id not in task_ids:
                    task_ids.append(row.task_id)
            for task_id in task_ids:
                task = session.get(Task, task_id)
                if task is not None:
                    task.sync_status = SyncStatus.PENDING.value
                    session.add(task)
            session.commit()
            return task_ids

    def count_queue(self, *, below: Optional[int] = None, at_least: Optional[int] = None) -> int:
        with self._session_factory() as session:
            stmt = select(func.count()).select_from(SyncQueueItem)
            if below is not None:
                stmt = stmt.where(SyncQueueItem.retry_count < below)
            if at_least is not None:
                stmt = stmt.where(SyncQueueItem.retry_count >= at_least)
            return int(session.exec(stmt).one())


def _queue_row(session: Session, item_id: str) -> Optional[SyncQueueItem]:
    return session.exec(select(SyncQueueItem).where(SyncQueueItem.id == item_id)).first()


def snapshot_of(task: Task) -> Dict[str, Any]:
    """Task fields as stored in a queue item's ``data`` column."""

    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "completed": bool(task.completed),
        "created_at": to_wire(task.created_at),
        "updated_at": to_wire(task.updated_at),
        "is_deleted": bool(task.is_deleted),
        "sync_status": task.sync_status,
        "server_id": task.server_id,
        "last_synced_at": to_wire(task.last_synced_at),
    }


__all__ = ["SyncStore", "snapshot_of"]
