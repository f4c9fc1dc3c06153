"""HTTP client for the Open Library catalog with timeouts and retries."""
from datetime import date
from typing import Optional, Dict, Any, Callable
import logging
import time

import requests

from pageturner.config import Config
from pageturner.errors import UpstreamError
from pageturner.models import Query
from pageturner.parse import cover_image_url, DEFAULT_COVER_SIZE
from pageturner.retry import RetryPolicy, execute_with_retry, linear_backoff

logger = logging.getLogger(__name__)


SEARCH_FIELDS = "key,title,author_name,cover_i,first_publish_year,subject"
RECENT_WINDOW_YEARS = 5


def recent_query(year: int) -> str:
    """Catalog query for works first published in the last few years."""
    return f"first_publish_year:[{year - RECENT_WINDOW_YEARS} TO {year}]"


def require_field(data: Any, field: str, url: str) -> Dict[str, Any]:
    """Reject bodies missing their expected top-level field."""
    if not isinstance(data, dict) or field not in data:
        raise UpstreamError(f"Malformed response from {url}: missing '{field}'")
    return data


class CatalogClient:
    """Client for the Open Library API with timeouts, retries, and backoff."""

    def __init__(
        self,
        base_url: str = Config.CATALOG_BASE_URL,
        timeout: float = Config.DEFAULT_TIMEOUT,
        retry_policy: Optional[RetryPolicy] = None,
        covers_base_url: str = Config.COVERS_BASE_URL,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the catalog client.

        Args:
            base_url: Catalog host
            timeout: Request timeout in seconds, applied to every call
            retry_policy: Policy for the recent listing (3 attempts, 1s/2s waits by default)
            covers_base_url: Cover image host
            session: Optional pre-built session
            sleep: Sleep function used between retries
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=Config.DEFAULT_MAX_ATTEMPTS,
            backoff=linear_backoff(Config.DEFAULT_BACKOFF)
        )
        self.covers_base_url = covers_base_url
        self.sleep = sleep

        # Create session for connection pooling
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": Config.USER_AGENT
        })

    def search(self, query: Query) -> Dict[str, Any]:
        """
        Search the catalog. Single attempt: a failure surfaces immediately.

        Args:
            query: Search query

        Returns:
            Raw response with "docs" and "numFound"
        """
        params = {
            "q": query.text,
            "page": query.page,
            "limit": query.limit,
            "fields": SEARCH_FIELDS
        }
        url = f"{self.base_url}/search.json"
        return require_field(self._get_json(url, params), "docs", url)

    def fetch_recent(self, limit: int, year: Optional[int] = None) -> Dict[str, Any]:
        """
        Fetch newly published works, retrying transient failures.

        Args:
            limit: Number of records to request
            year: Newest first-publish year to include (defaults to this year)

        Returns:
            Raw response with "docs" and "numFound"
        """
        params = {
            "q": recent_query(year if year is not None else date.today().year),
            "sort": "new",
            "limit": limit,
            "fields": SEARCH_FIELDS
        }
        url = f"{self.base_url}/search.json"

        def attempt() -> Dict[str, Any]:
            return require_field(self._get_json(url, params), "docs", url)

        return execute_with_retry(attempt, self.retry_policy, sleep=self.sleep)

    def fetch_detail(self, work_id: str) -> Dict[str, Any]:
        """Fetch a single work. Single attempt."""
        url = f"{self.base_url}/works/{work_id}.json"
        data = self._get_json(url)
        if not isinstance(data, dict):
            raise UpstreamError(f"Malformed response from {url}: expected an object")
        return data

    def fetch_editions(
        self,
        work_id: str,
        limit: int = 1,
        sort: str = "publish_date"
    ) -> Dict[str, Any]:
        """Fetch editions of a work. Single attempt."""
        url = f"{self.base_url}/works/{work_id}/editions.json"
        data = self._get_json(url, {"limit": limit, "sort": sort})
        return require_field(data, "entries", url)

    def cover_url(self, cover_id: Optional[int], size: str = DEFAULT_COVER_SIZE) -> Optional[str]:
        """Cover image URL for a cover ID (size S, M or L)."""
        return cover_image_url(self.covers_base_url, cover_id, size)

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make one GET request and decode the JSON body.

        Args:
            url: Request URL
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            UpstreamError: On timeout, connection error, non-2xx status or bad JSON
        """
        logger.info(f"GET {url} params={params}")

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"Timeout after {self.timeout}s: {url}")
            raise UpstreamError(f"Timeout fetching {url}", cause=e) from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Connection error for {url}: {e}")
            raise UpstreamError(f"Request to {url} failed: {e}", cause=e) from e

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.warning(f"Upstream returned {response.status_code} for {url}")
            raise UpstreamError(
                f"Upstream returned {response.status_code} for {url}",
                cause=e,
                status_code=response.status_code
            ) from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from {url}: {e}")
            raise UpstreamError(f"Invalid JSON from {url}", cause=e) from e

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
