"""Ships queue items to the remote batch endpoint."""

from __future__ import annotations

from itertools import islice
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import requests

from core.logging_setup import get_logger
from datetime_utils import to_wire, utc_now
from models.sync_result import ItemResult
from services.errors import TransportError
from services.outbox_queue import QueueEntry


def iter_batches(entries: Iterable[QueueEntry], size: int) -> Iterator[List[QueueEntry]]:
    """Yield consecutive slices of at most ``size`` entries, preserving order."""
    if size <= 0:
        raise ValueError("batch size must be positive")
    iterator = iter(entries)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


def _parse_item(raw: Any) -> Optional[ItemResult]:
    if not isinstance(raw, dict):
        return None
    client_id = raw.get("client_id")
    if client_id is None:
        return None
    resolved = raw.get("resolved_data")
    error = raw.get("error")
    return ItemResult(
        client_id=str(client_id),
        status=str(raw.get("status") or "").strip().lower(),
        resolved_data=resolved if isinstance(resolved, dict) else None,
        error=str(error) if error else None,
    )


class BatchDispatcher:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        batch_path: str = "/sync/batch",
        http: Optional[requests.Session] = None,
    ) -> None:
        self.url = base_url.rstrip("/") + batch_path
        self.timeout = timeout
        self.http = http or requests.Session()
        self.logger = get_logger("dispatcher")

    def build_request(self, entries: Sequence[QueueEntry]) -> Dict[str, Any]:
        return {
            "items": [entry.to_wire() for entry in entries],
            "client_timestamp": to_wire(utc_now()),
        }

    def send_batch(self, entries: Sequence[QueueEntry]) -> List[ItemResult]:
        """POST one batch and return the per-item results in response order.

        Raises :class:`TransportError` when the request as a whole cannot be
        trusted: network failure, timeout, non-2xx status or a body that is not
        a batch response.
        """
        payload = self.build_request(entries)
        self.logger.debug("Dispatching batch of %d item(s)", len(entries))
        try:
            response = self.http.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Batch request failed: {exc}") from exc

        status = response.status_code
        if not 200 <= status < 300:
            raise TransportError(f"Batch request returned HTTP {status}", status_code=status)

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError("Batch response is not valid JSON", status_code=status) from exc

        processed = body.get("processed_items") if isinstance(body, dict) else None
        if not isinstance(processed, list):
            raise TransportError("Batch response has no processed_items list", status_code=status)

        results: List[ItemResult] = []
        for raw in processed:
            item = _parse_item(raw)
            if item is None:
                self.logger.warning("Skipping malformed batch result entry: %r", raw)
                continue
            results.append(item)
        return results


__all__ = ["BatchDispatcher", "iter_batches"]
