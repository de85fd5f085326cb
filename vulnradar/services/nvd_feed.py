"""NVD CVE API 2.0 client: keyword search for one vendor at a time."""

import json
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from vulnradar.core.config import Settings

logger = logging.getLogger(__name__)


class FeedError(Exception):
    """Raised when the NVD request fails (unreachable, timeout, non-200, or invalid JSON)."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class NvdFeedClient:
    """
    Thin synchronous client over the NVD search endpoint.
    Pass an httpx.Client to reuse a connection pool or to inject a mock transport.
    """

    def __init__(self, settings: "Settings", client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(settings.NVD_REQUEST_TIMEOUT_SEC)
        )

    def __enter__(self) -> "NvdFeedClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": self._settings.NVD_USER_AGENT}
        if self._settings.NVD_API_KEY is not None:
            headers["apiKey"] = self._settings.NVD_API_KEY.get_secret_value()
        return headers

    def search_by_keyword(self, keyword: str) -> list[dict[str, Any]]:
        """Return the 'vulnerabilities' array for a keyword search (one page, NVD_RESULTS_PER_PAGE entries)."""
        params = {
            "keywordSearch": keyword,
            "resultsPerPage": self._settings.NVD_RESULTS_PER_PAGE,
        }
        log_extra: dict[str, Any] = {"keyword": keyword}
        start = time.perf_counter()
        try:
            response = self._client.get(
                self._settings.NVD_BASE_URL,
                params=params,
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            logger.warning("NVD request timed out", extra=log_extra)
            raise FeedError("NVD request timed out.", cause=e) from e
        except httpx.HTTPError as e:
            logger.warning("NVD request failed", extra=log_extra)
            raise FeedError(f"NVD request failed: {e}", cause=e) from e

        log_extra["latency_seconds"] = time.perf_counter() - start
        log_extra["status_code"] = response.status_code
        if response.status_code != 200:
            logger.warning("NVD returned non-200 status", extra=log_extra)
            raise FeedError(f"NVD API returned status {response.status_code}")

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise FeedError("NVD response body is not valid JSON.", cause=e) from e
        if not isinstance(body, dict):
            raise FeedError("NVD response body is not a JSON object.")

        vulnerabilities = body.get("vulnerabilities") or []
        log_extra["result_count"] = len(vulnerabilities)
        logger.info("NVD keyword search completed", extra=log_extra)
        return vulnerabilities
