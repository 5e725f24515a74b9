# tasksync/storage/db.py
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from core.settings import DB_PATH

# Ensure SQLModel metadata is populated
import models.task  # noqa: F401
import models.sync_queue  # noqa: F401


SessionFactory = Callable[[], Session]

_engine: Optional[Engine] = None


def make_engine(url: Optional[str] = None) -> Engine:
    return create_engine(url or f"sqlite:///{DB_PATH.as_posix()}", echo=False)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _engine = make_engine()
    return _engine


def init_db(engine: Optional[Engine] = None) -> Engine:
    actual = engine or get_engine()
    SQLModel.metadata.create_all(actual)
    return actual


def get_session() -> Session:
    return Session(get_engine())


def session_factory_for(engine: Engine) -> SessionFactory:
    def factory() -> Session:
        return Session(engine)

    return factory


__all__ = [
    "SessionFactory",
    "get_engine",
    "get_session",
    "init_db",
    "make_engine",
    "session_factory_for",
]
