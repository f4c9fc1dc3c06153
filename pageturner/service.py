"""Search and browse operations over the catalog clients."""
from datetime import date
from typing import Any, Callable, Dict, List, Optional
import logging

from pageturner.async_client import AsyncCatalogClient
from pageturner.client import CatalogClient
from pageturner.errors import InvalidArgument, NotFound, UpstreamError
from pageturner.models import BookDetail, BookSummary, Query, RecentBooks
from pageturner.parse import (
    filter_by_category,
    normalize_category,
    parse_search_response,
    to_detail,
)

logger = logging.getLogger(__name__)


NEW_ARRIVALS_CAP = 10


def _build_query(text: str, page: int, limit: int) -> Query:
    query = Query(text=text or "", page=page, limit=limit)
    if query.is_blank:
        raise InvalidArgument("Search text must not be empty")
    return query


def _recent_books(response: Dict[str, Any], category: Optional[str] = None) -> RecentBooks:
    items = filter_by_category(parse_search_response(response, listing=True), category)
    total = response.get("numFound")
    if not isinstance(total, int):
        total = len(response.get("docs") or [])
    logger.info(f"Recent listing kept {len(items)} books (upstream total {total})")
    return RecentBooks(items=items, total=total)


def _new_arrivals(books: RecentBooks, year: int) -> List[BookSummary]:
    fresh = [b for b in books.items if b.year is not None and b.year >= year]
    return fresh[:NEW_ARRIVALS_CAP]


def _first_edition(editions: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    entries = editions.get("entries") or []
    if entries and isinstance(entries[0], dict):
        return entries[0]
    return None


class CatalogService:
    """
    Free-text search, recent listing and detail lookups.

    Stateless apart from its client, so one instance can serve concurrent
    callers.
    """

    def __init__(self, client: CatalogClient, today: Callable[[], date] = date.today):
        self.client = client
        self.today = today

    def search(self, text: str, page: int = 1, limit: int = 20) -> List[BookSummary]:
        """
        Search for books.

        Raises:
            InvalidArgument: text is empty or whitespace (no request is made)
            UpstreamError: the single search attempt failed
        """
        query = _build_query(text, page, limit)
        response = self.client.search(query)
        books = parse_search_response(response)
        logger.info(f"Search '{query.text}' returned {len(books)} books")
        return books

    def recent(self, limit: int = 20, category: Optional[str] = None) -> RecentBooks:
        """
        Recently published books that pass the listing filter.

        Args:
            limit: Records to request from upstream
            category: Keep only this inferred category; None or "All" keeps every book

        Returns:
            RecentBooks whose total is the upstream match count, not the filtered count
        """
        if limit < 1:
            raise InvalidArgument(f"limit must be >= 1, got {limit}")
        normalize_category(category)
        response = self.client.fetch_recent(limit, year=self.today().year)
        return _recent_books(response, category)

    def new_arrivals(self, limit: int = 20, category: Optional[str] = None) -> List[BookSummary]:
        """Recent books first published this calendar year, at most ten."""
        year = self.today().year
        return _new_arrivals(self.recent(limit, category), year)

    def detail(self, work_id: str) -> BookDetail:
        """
        Detail view for one work.

        Raises:
            InvalidArgument: work_id is empty
            NotFound: the catalog answered 404
            UpstreamError: any other failure
        """
        if not work_id or not work_id.strip():
            raise InvalidArgument("Work ID must not be empty")
        work_id = work_id.strip().split("/")[-1]

        try:
            work = self.client.fetch_detail(work_id)
        except UpstreamError as e:
            if e.status_code == 404:
                raise NotFound(work_id, cause=e) from e
            raise

        edition = None
        try:
            edition = _first_edition(self.client.fetch_editions(work_id))
        except UpstreamError as e:
            logger.warning(f"Could not fetch editions for {work_id}: {e}")

        return to_detail(work, edition, work_id=work_id)


class AsyncCatalogService:
    """Async counterpart of CatalogService."""

    def __init__(self, client: AsyncCatalogClient, today: Callable[[], date] = date.today):
        self.client = client
        self.today = today

    async def search(self, text: str, page: int = 1, limit: int = 20) -> List[BookSummary]:
        """Search for books. Single attempt; blank text is rejected before any request."""
        query = _build_query(text, page, limit)
        response = await self.client.search(query)
        books = parse_search_response(response)
        logger.info(f"Async search '{query.text}' returned {len(books)} books")
        return books

    async def recent(self, limit: int = 20, category: Optional[str] = None) -> RecentBooks:
        """Recently published books that pass the listing filter, optionally one category."""
        if limit < 1:
            raise InvalidArgument(f"limit must be >= 1, got {limit}")
        normalize_category(category)
        response = await self.client.fetch_recent(limit, year=self.today().year)
        return _recent_books(response, category)

    async def new_arrivals(self, limit: int = 20, category: Optional[str] = None) -> List[BookSummary]:
        """Recent books first published this calendar year, at most ten."""
        year = self.today().year
        return _new_arrivals(await self.recent(limit, category), year)

    async def detail(self, work_id: str) -> BookDetail:
        """Detail view for one work; a 404 raises NotFound, other failures UpstreamError."""
        if not work_id or not work_id.strip():
            raise InvalidArgument("Work ID must not be empty")
        work_id = work_id.strip().split("/")[-1]

        try:
            work = await self.client.fetch_detail(work_id)
        except UpstreamError as e:
            if e.status_code == 404:
                raise NotFound(work_id, cause=e) from e
            raise

        edition = None
        try:
            edition = _first_edition(await self.client.fetch_editions(work_id))
        except UpstreamError as e:
            logger.warning(f"Could not fetch editions for {work_id}: {e}")

        return to_detail(work, edition, work_id=work_id)
