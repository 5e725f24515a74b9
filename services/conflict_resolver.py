from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Union

from datetime_utils import parse_timestamp


TaskVersion = Union[Mapping[str, Any], Any]


def _updated_at(version: TaskVersion) -> datetime:
    if isinstance(version, Mapping):
        raw = version.get("updated_at")
    else:
        raw = getattr(version, "updated_at", None)
    parsed = parse_timestamp(raw)
    if parsed is None:
        raise ValueError(f"Task version has no usable updated_at: {raw!r}")
    return parsed


def local_wins(local: TaskVersion, server: TaskVersion) -> bool:
    """True only when the local copy is strictly newer."""
    return _updated_at(local) > _updated_at(server)


def resolve(local: TaskVersion, server: TaskVersion) -> TaskVersion:
    """Last-writer-wins by ``updated_at``; ties go to the server copy.

    Whole records are compared, never merged field by field. Either argument
    may be a ``Task`` or a mapping with an ``updated_at`` value.
    """
    return local if local_wins(local, server) else server


__all__ = ["local_wins", "resolve"]
