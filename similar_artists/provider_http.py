"""
Shared HTTP plumbing for the recommendation providers.

JsonHttpProvider owns the requests.Session, the optional client-side pacing and
the translation of transport failures into ProviderError kinds. Subclasses only
build query parameters and parse payloads.
"""
import logging
import threading
import time
from typing import Any, Dict, Optional

import requests

from .errors import ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Enforces a minimum interval between calls.

    Usage:
        limiter = RateLimiter(calls_per_second=5)
        limiter.wait()  # sleeps only when the previous call was too recent
    """

    def __init__(self, calls_per_second: float = 5.0):
        if calls_per_second <= 0:
            raise ValueError("calls_per_second must be positive")

        self.min_interval = 1.0 / calls_per_second
        self.last_call = 0.0
        self.total_waits = 0
        self.total_wait_time = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            elapsed = time.monotonic() - self.last_call
            if elapsed < self.min_interval:
                sleep_time = self.min_interval - elapsed
                time.sleep(sleep_time)
                self.total_waits += 1
                self.total_wait_time += sleep_time
            self.last_call = time.monotonic()

    def get_stats(self) -> dict:
        return {
            'total_waits': self.total_waits,
            'total_wait_time': self.total_wait_time,
        }


class JsonHttpProvider:
    """Base class for JSON-over-HTTP recommendation providers."""

    provider_name = "provider"

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        calls_per_second: Optional[float] = None,
    ):
        """
        Args:
            session: Session to reuse (a new one is created when omitted)
            timeout: Per-request timeout in seconds
            calls_per_second: Client-side pacing; None disables it
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.rate_limiter = RateLimiter(calls_per_second) if calls_per_second else None
        self.request_count = 0

    def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        GET url and return the decoded JSON object.

        Raises:
            ProviderError: TIMEOUT, NETWORK (connection failures and 5xx),
                RATE_LIMIT (HTTP 429) or EMPTY (body is not a JSON object)
        """
        if self.rate_limiter is not None:
            self.rate_limiter.wait()

        self.request_count += 1
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"{self.provider_name} request timed out: {url}")
            raise ProviderError(ProviderErrorKind.TIMEOUT, e) from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"{self.provider_name} request failed: {e}")
            raise ProviderError(ProviderErrorKind.NETWORK, e) from e

        if response.status_code == 429:
            logger.warning(f"{self.provider_name} rate limit hit (HTTP 429)")
            raise ProviderError(ProviderErrorKind.RATE_LIMIT, message="HTTP 429")

        if response.status_code >= 500:
            logger.warning(f"{self.provider_name} returned HTTP {response.status_code}")
            raise ProviderError(ProviderErrorKind.NETWORK, message=f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            if response.status_code >= 400:
                raise ProviderError(ProviderErrorKind.NETWORK, e, message=f"HTTP {response.status_code}") from e
            raise ProviderError(ProviderErrorKind.EMPTY, e, message="response body is not JSON") from e

        if not isinstance(data, dict):
            raise ProviderError(ProviderErrorKind.EMPTY, message="response body is not a JSON object")

        return data
