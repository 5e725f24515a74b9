"""SQLModel table for the outbound sync queue."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now
from models.task import new_id


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SyncQueueItem(SQLModel, table=True):
    __tablename__ = "sync_queue"

    # Insertion sequence; breaks ties between items sharing a timestamp.
    seq: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(default_factory=new_id, unique=True, index=True)
    task_id: str = Field(index=True)
    operation: str
    data: str
    created_at: datetime = Field(default_factory=utc_now, index=True)
    retry_count: int = Field(default=0)
    error_message: Optional[str] = None


__all__ = ["Operation", "SyncQueueItem"]
