from __future__ import annotations

from typing import Optional

import requests

from core.logging_setup import get_logger


class ConnectivityChecker:
    """Health check against the remote API. Any failure reads as unreachable."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        health_path: str = "/health",
        http: Optional[requests.Session] = None,
    ) -> None:
        self.url = base_url.rstrip("/") + health_path
        self.timeout = timeout
        self.http = http or requests.Session()
        self.logger = get_logger("connectivity")

    def is_reachable(self) -> bool:
        try:
            response = self.http.get(self.url, timeout=self.timeout)
        except requests.RequestException as exc:
            self.logger.warning("Health check %s failed: %s", self.url, exc)
            return False
        if not 200 <= response.status_code < 300:
            self.logger.warning("Health check %s returned %s", self.url, response.status_code)
            return False
        return True


__all__ = ["ConnectivityChecker"]
