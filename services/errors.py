"""Exceptions raised by the sync engine."""

from __future__ import annotations

from typing import Optional


PERMANENT_FAILURE = "Permanent failure"


class SyncError(Exception):
    """Base class for sync engine failures."""


class ConnectivityError(SyncError):
    """The remote endpoint did not answer the health check."""

    def __init__(self, message: str = "Cannot reach server for synchronization"):
        super().__init__(message)


class TransportError(SyncError):
    """A batch request failed as a whole."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ItemError(SyncError):
    """The server rejected a single queue item."""


class SyncInProgressError(SyncError):
    """Another sync run is already active on this instance."""


class TaskNotFoundError(SyncError, LookupError):
    pass


__all__ = [
    "PERMANENT_FAILURE",
    "ConnectivityError",
    "ItemError",
    "SyncError",
    "SyncInProgressError",
    "TaskNotFoundError",
    "TransportError",
]
