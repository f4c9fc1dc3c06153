"""Async HTTP client for the Open Library catalog."""
import asyncio
from datetime import date
from typing import Optional, Dict, Any, Awaitable, Callable
import logging

import httpx

from pageturner.client import SEARCH_FIELDS, recent_query, require_field
from pageturner.config import Config
from pageturner.errors import UpstreamError
from pageturner.models import Query
from pageturner.parse import cover_image_url, DEFAULT_COVER_SIZE
from pageturner.retry import RetryPolicy, execute_with_retry_async, linear_backoff

logger = logging.getLogger(__name__)


class AsyncCatalogClient:
    """Async counterpart of CatalogClient with the same call contract."""

    def __init__(
        self,
        base_url: str = Config.CATALOG_BASE_URL,
        timeout: float = Config.DEFAULT_TIMEOUT,
        retry_policy: Optional[RetryPolicy] = None,
        covers_base_url: str = Config.COVERS_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize async client.

        Args:
            base_url: Catalog host
            timeout: Request timeout in seconds
            retry_policy: Policy for the recent listing
            covers_base_url: Cover image host
            transport: Optional httpx transport (tests pass a MockTransport)
            sleep: Awaitable sleep used between retries
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=Config.DEFAULT_MAX_ATTEMPTS,
            backoff=linear_backoff(Config.DEFAULT_BACKOFF)
        )
        self.covers_base_url = covers_base_url
        self.sleep = sleep

        # Create async HTTP client
        self.client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
            headers={
                "Accept": "application/json",
                "User-Agent": Config.USER_AGENT
            }
        )

    async def search(self, query: Query) -> Dict[str, Any]:
        """Search the catalog. Single attempt."""
        params = {
            "q": query.text,
            "page": query.page,
            "limit": query.limit,
            "fields": SEARCH_FIELDS
        }
        url = f"{self.base_url}/search.json"
        return require_field(await self._get_json(url, params), "docs", url)

    async def fetch_recent(self, limit: int, year: Optional[int] = None) -> Dict[str, Any]:
        """Fetch newly published works, retrying transient failures."""
        params = {
            "q": recent_query(year if year is not None else date.today().year),
            "sort": "new",
            "limit": limit,
            "fields": SEARCH_FIELDS
        }
        url = f"{self.base_url}/search.json"

        async def attempt() -> Dict[str, Any]:
            return require_field(await self._get_json(url, params), "docs", url)

        return await execute_with_retry_async(attempt, self.retry_policy, sleep=self.sleep)

    async def fetch_detail(self, work_id: str) -> Dict[str, Any]:
        """Fetch a single work. Single attempt."""
        url = f"{self.base_url}/works/{work_id}.json"
        data = await self._get_json(url)
        if not isinstance(data, dict):
            raise UpstreamError(f"Malformed response from {url}: expected an object")
        return data

    async def fetch_editions(
        self,
        work_id: str,
        limit: int = 1,
        sort: str = "publish_date"
    ) -> Dict[str, Any]:
        """Fetch editions of a work. Single attempt."""
        url = f"{self.base_url}/works/{work_id}/editions.json"
        data = await self._get_json(url, {"limit": limit, "sort": sort})
        return require_field(data, "entries", url)

    def cover_url(self, cover_id: Optional[int], size: str = DEFAULT_COVER_SIZE) -> Optional[str]:
        """Cover image URL for a cover ID (size S, M or L)."""
        return cover_image_url(self.covers_base_url, cover_id, size)

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make one GET request and decode the JSON body."""
        logger.info(f"Async GET {url} params={params}")

        try:
            response = await self.client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout after {self.timeout}s: {url}")
            raise UpstreamError(f"Timeout fetching {url}", cause=e) from e
        except httpx.HTTPError as e:
            logger.warning(f"Async request to {url} failed: {e}")
            raise UpstreamError(f"Request to {url} failed: {e}", cause=e) from e

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
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

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
