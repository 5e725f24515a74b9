from __future__ import annotations

from typing import List, Optional

from datetime_utils import utc_now
from models.sync_queue import Operation
from models.task import SyncStatus, Task
from services.errors import TaskNotFoundError
from services.outbox_queue import OutboxQueue
from storage.sync_store import SyncStore, snapshot_of


_UPDATABLE = {"title", "description", "completed"}


def _clean_title(title) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValueError("Title is required")
    return title.strip()


class TaskRepository:
    """Task CRUD where every mutation is committed together with its outbox item."""

    def __init__(self, store: SyncStore, queue: Optional[OutboxQueue] = None):
        self.store = store
        self.queue = queue or OutboxQueue(store)

    def create(self, title: str, description: Optional[str] = None) -> Task:
        now = utc_now()
        with self.store.session() as session:
            task = Task(
                title=_clean_title(title),
                description=description or None,
                completed=False,
                is_deleted=False,
                created_at=now,
                updated_at=now,
                sync_status=SyncStatus.PENDING.value,
            )
            session.add(task)
            self.queue.enqueue(task.id, Operation.CREATE.value, snapshot_of(task), session=session)
            session.commit()
            session.refresh(task)
            return task

    def get(self, task_id: str) -> Optional[Task]:
        return self.store.get_task(task_id)

    def require(self, task_id: str) -> Task:
        task = self.get(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return task

    def list(self) -> List[Task]:
        return self.store.list_tasks()

    def list_needing_sync(self) -> List[Task]:
        return self.store.list_tasks_needing_sync()

    def update(self, task_id: str, **fields) -> Optional[Task]:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported fields: {', '.join(sorted(unknown))}")
        with self.store.session() as session:
            task = session.get(Task, task_id)
            if task is None or task.is_deleted:
                return None
            if "title" in fields and fields["title"] is not None:
                task.title = _clean_title(fields["title"])
            if "description" in fields:
                task.description = fields["description"] or None
            if "completed" in fields and fields["completed"] is not None:
                task.completed = bool(fields["completed"])
            task.updated_at = utc_now()
            task.sync_status = SyncStatus.PENDING.value
            session.add(task)
            self.queue.enqueue(task.id, Operation.UPDATE.value, snapshot_of(task), session=session)
            session.commit()
            session.refresh(task)
            return task

    def delete(self, task_id: str) -> bool:
        """Soft delete; the row stays so the deletion can be synced."""
        with self.store.session() as session:
            task = session.get(Task, task_id)
            if task is None or task.is_deleted:
                return False
            task.is_deleted = True
            task.updated_at = utc_now()
            task.sync_status = SyncStatus.PENDING.value
            session.add(task)
            self.queue.enqueue(task.id, Operation.DELETE.value, snapshot_of(task), session=session)
            session.commit()
            return True


__all__ = ["TaskRepository"]
