import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep settings, logs and the default database out of the real user profile.
os.environ.setdefault("TASKSYNC_DATA_DIR", tempfile.mkdtemp(prefix="tasksync-tests-"))

import pytest
import requests
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from services.outbox_queue import OutboxQueue
from services.task_repository import TaskRepository
from storage.sync_store import SyncStore


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, json_error=False):
        self.status_code = status_code
        self._json = json_data
        self._json_error = json_error

    def json(self):
        if self._json_error:
            raise ValueError("not json")
        return self._json


class FakeHttp:
    """Stand-in for ``requests.Session`` that records calls.

    ``health`` and ``batches`` hold either a :class:`FakeResponse`, an
    exception to raise, or (for batches) a callable building the response from
    the request payload.
    """

    def __init__(self, health=None, batches=None):
        self.health = health if health is not None else FakeResponse(200, {"status": "ok"})
        self.batches = list(batches or [])
        self.gets = []
        self.posts = []

    def get(self, url, timeout=None):
        self.gets.append((url, timeout))
        if isinstance(self.health, Exception):
            raise self.health
        return self.health

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if not self.batches:
            raise requests.ConnectionError("no response scripted")
        step = self.batches.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(json)
        return step


def echo_success(payload):
    """Batch responder that accepts every dispatched item."""
    return FakeResponse(
        200,
        {
            "processed_items": [
                {
                    "client_id": item["task_id"],
                    "status": "success",
                    "resolved_data": {"id": "srv-" + item["task_id"]},
                }
                for item in payload["items"]
            ]
        },
    )


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    def factory():
        return Session(engine)

    return factory


@pytest.fixture()
def store(session_factory):
    return SyncStore(session_factory)


@pytest.fixture()
def queue(store):
    return OutboxQueue(store, max_retries=3)


@pytest.fixture()
def repo(store, queue):
    return TaskRepository(store, queue)
