"""Tests for the search/browse service."""
import asyncio
from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest
import requests

from pageturner.async_client import AsyncCatalogClient
from pageturner.client import CatalogClient
from pageturner.errors import InvalidArgument, NotFound, UpstreamError
from pageturner.service import AsyncCatalogService, CatalogService


TODAY = date(2026, 10, 18)

RECENT_RESPONSE = {
    "numFound": 1234,
    "docs": [
        {"key": "/works/OL1W", "title": "No Extras"},
        {"key": "/works/OL2W", "title": "Haunted", "cover_i": 11,
         "first_publish_year": 2026, "subject": ["Gothic Horror Fiction"]},
        {"key": "/works/OL3W", "author_name": ["Nameless"], "cover_i": 12},
        {"key": "/works/OL4W", "title": "Soup", "author_name": ["Chef"],
         "first_publish_year": 2024, "subject": ["Cooking"]},
        {"key": "/works/OL5W", "title": "Lab", "author_name": ["Curie"],
         "first_publish_year": 2027, "subject": ["Science"]}
    ]
}


def make_service():
    client = Mock(spec=CatalogClient)
    return CatalogService(client, today=lambda: TODAY), client


def test_search_rejects_empty_text_without_network():
    """Test that blank text never reaches the client."""
    service, client = make_service()

    for text in ("", "   ", None):
        with pytest.raises(InvalidArgument):
            service.search(text)

    assert client.search.call_count == 0


def test_search_rejects_bad_paging():
    """Test that page and limit must be positive."""
    service, client = make_service()

    with pytest.raises(InvalidArgument):
        service.search("dune", page=0)
    with pytest.raises(InvalidArgument):
        service.search("dune", limit=0)
    assert client.search.call_count == 0


def test_search_keeps_records_the_listing_would_drop():
    """Test that search only requires a title."""
    service, client = make_service()
    client.search.return_value = RECENT_RESPONSE

    books = service.search("anything")

    assert [b.id for b in books] == ["OL1W", "OL2W", "OL4W", "OL5W"]
    assert books[0].authors == ["Unknown Author"]
    query = client.search.call_args[0][0]
    assert (query.text, query.page, query.limit) == ("anything", 1, 20)


def test_search_propagates_upstream_error():
    """Test that a failed search attempt surfaces unchanged."""
    service, client = make_service()
    error = UpstreamError("down", status_code=503)
    client.search.side_effect = error

    with pytest.raises(UpstreamError) as exc_info:
        service.search("dune")
    assert exc_info.value is error


def test_recent_filters_and_reports_upstream_total():
    """Test the listing filter, categories and upstream total."""
    service, client = make_service()
    client.fetch_recent.return_value = RECENT_RESPONSE

    result = service.recent(limit=5)

    assert [b.id for b in result.items] == ["OL2W", "OL4W", "OL5W"]
    assert [b.category for b in result.items] == ["Horror", "Novel", "Science"]
    assert result.total == 1234
    client.fetch_recent.assert_called_once_with(5, year=2026)


def test_recent_total_defaults_to_doc_count():
    """Test the total when upstream omits numFound."""
    service, client = make_service()
    client.fetch_recent.return_value = {"docs": [{"title": "A", "cover_i": 1}, {}]}

    assert service.recent().total == 2


def test_new_arrivals_current_year_only():
    """Test that new arrivals need year >= the current year."""
    service, client = make_service()
    client.fetch_recent.return_value = RECENT_RESPONSE

    books = service.new_arrivals()

    assert [b.id for b in books] == ["OL2W", "OL5W"]


def test_new_arrivals_capped_at_ten():
    """Test the cap and upstream ordering."""
    docs = [
        {"key": f"/works/OL{i}W", "title": f"Book {i}", "cover_i": i, "first_publish_year": 2026}
        for i in range(1, 16)
    ]
    service, client = make_service()
    client.fetch_recent.return_value = {"docs": docs, "numFound": 15}

    books = service.new_arrivals(limit=15)

    assert [b.id for b in books] == [f"OL{i}W" for i in range(1, 11)]


def test_detail_merges_work_and_edition():
    """Test detail lookups with an edition fallback."""
    service, client = make_service()
    client.fetch_detail.return_value = {
        "key": "/works/OL7W",
        "title": "Work",
        "description": {"type": "/type/text", "value": "Work text"}
    }
    client.fetch_editions.return_value = {
        "entries": [{"publish_date": "1965", "authors": [{"key": "/authors/OL3A"}]}]
    }

    book = service.detail("OL7W")

    assert book.id == "OL7W"
    assert book.description == "Work text"
    assert book.authors == ["OL3A"]
    assert book.first_publish_date == "1965"
    client.fetch_detail.assert_called_once_with("OL7W")
    client.fetch_editions.assert_called_once_with("OL7W")


def test_detail_accepts_full_key():
    """Test that a /works/ key is reduced to the work ID."""
    service, client = make_service()
    client.fetch_detail.return_value = {"key": "/works/OL7W", "title": "Work"}
    client.fetch_editions.return_value = {"entries": []}

    service.detail("/works/OL7W")

    client.fetch_detail.assert_called_once_with("OL7W")


def test_detail_404_is_not_found():
    """Test that an upstream 404 becomes NotFound."""
    service, client = make_service()
    client.fetch_detail.side_effect = UpstreamError("missing", status_code=404)

    with pytest.raises(NotFound) as exc_info:
        service.detail("OL404W")

    assert exc_info.value.work_id == "OL404W"
    assert not isinstance(exc_info.value, UpstreamError)
    client.fetch_editions.assert_not_called()


def test_detail_other_failure_is_upstream_error():
    """Test that non-404 failures stay UpstreamError."""
    service, client = make_service()
    client.fetch_detail.side_effect = UpstreamError("boom", status_code=500)

    with pytest.raises(UpstreamError):
        service.detail("OL1W")


def test_detail_survives_edition_failure():
    """Test that edition errors fall back to work data only."""
    service, client = make_service()
    client.fetch_detail.return_value = {"key": "/works/OL8W", "title": "Solo"}
    client.fetch_editions.side_effect = UpstreamError("editions down")

    book = service.detail("OL8W")

    assert book.title == "Solo"
    assert book.description == "No description available."


def test_detail_rejects_empty_id():
    """Test that an empty work ID is rejected before any request."""
    service, client = make_service()

    with pytest.raises(InvalidArgument):
        service.detail("  ")
    client.fetch_detail.assert_not_called()


def test_recent_end_to_end_retry():
    """Test recent() over a real client whose upstream fails twice."""
    ok = requests.Response()
    ok.status_code = 200
    ok._content = b'{"numFound": 3, "docs": [{"key": "/works/OL1W", "title": "A", "cover_i": 1}]}'

    session = Mock(spec=requests.Session)
    session.headers = {}
    session.get.side_effect = [
        requests.exceptions.ConnectionError("reset"),
        requests.exceptions.Timeout("slow"),
        ok
    ]
    sleeps = []
    client = CatalogClient(session=session, sleep=sleeps.append)

    result = CatalogService(client, today=lambda: TODAY).recent()

    assert [b.id for b in result.items] == ["OL1W"]
    assert result.total == 3
    assert sum(sleeps) >= 3.0


def test_recent_end_to_end_gives_up():
    """Test that three failures surface as UpstreamError from recent()."""
    session = Mock(spec=requests.Session)
    session.headers = {}
    session.get.side_effect = requests.exceptions.ConnectionError("down")
    client = CatalogClient(session=session, sleep=lambda s: None)

    with pytest.raises(UpstreamError):
        CatalogService(client, today=lambda: TODAY).recent()
    assert session.get.call_count == 3


def test_async_service_operations():
    """Test the async service against a mocked async client."""
    client = AsyncMock(spec=AsyncCatalogClient)
    client.fetch_recent.return_value = RECENT_RESPONSE
    client.fetch_detail.side_effect = UpstreamError("missing", status_code=404)
    service = AsyncCatalogService(client, today=lambda: TODAY)

    async def scenario():
        with pytest.raises(InvalidArgument):
            await service.search(" ")
        recent = await service.recent()
        arrivals = await service.new_arrivals()
        with pytest.raises(NotFound):
            await service.detail("OL404W")
        return recent, arrivals

    recent, arrivals = asyncio.run(scenario())

    assert client.search.await_count == 0
    assert recent.total == 1234
    assert [b.id for b in arrivals] == ["OL2W", "OL5W"]


def test_detail_keyless_work_keeps_requested_id():
    """Test that the detail ID is the requested work, not the edition key."""
    service, client = make_service()
    client.fetch_detail.return_value = {"title": "Keyless work"}
    client.fetch_editions.return_value = {"entries": [{"key": "/books/OL9M"}]}

    book = service.detail("OL7W")

    assert book.id == "OL7W"


def test_recent_category_filter_keeps_upstream_total():
    """Test filtering the listing by inferred category."""
    service, client = make_service()
    client.fetch_recent.return_value = RECENT_RESPONSE

    result = service.recent(category="horror")

    assert [b.id for b in result.items] == ["OL2W"]
    assert result.total == 1234


def test_recent_all_category_is_unfiltered():
    """Test that "All" and None keep every listable book."""
    service, client = make_service()
    client.fetch_recent.return_value = RECENT_RESPONSE

    assert [b.id for b in service.recent(category="All").items] == ["OL2W", "OL4W", "OL5W"]
    assert [b.id for b in service.recent(category=None).items] == ["OL2W", "OL4W", "OL5W"]


def test_recent_unknown_category_rejected_without_network():
    """Test that an unknown category never reaches the client."""
    service, client = make_service()

    with pytest.raises(InvalidArgument):
        service.recent(category="Cooking")
    client.fetch_recent.assert_not_called()


def test_new_arrivals_by_category():
    """Test new arrivals restricted to one category."""
    service, client = make_service()
    client.fetch_recent.return_value = RECENT_RESPONSE

    assert [b.id for b in service.new_arrivals(category="Science")] == ["OL5W"]


def test_async_service_category_and_keyless_detail():
    """Test category filtering and detail IDs on the async service."""
    client = AsyncMock(spec=AsyncCatalogClient)
    client.fetch_recent.return_value = RECENT_RESPONSE
    client.fetch_detail.return_value = {"title": "Keyless work"}
    client.fetch_editions.return_value = {"entries": [{"key": "/books/OL9M"}]}
    service = AsyncCatalogService(client, today=lambda: TODAY)

    async def scenario():
        recent = await service.recent(category="Novel")
        arrivals = await service.new_arrivals(category="Horror")
        book = await service.detail("OL7W")
        return recent, arrivals, book

    recent, arrivals, book = asyncio.run(scenario())

    assert [b.id for b in recent.items] == ["OL4W"]
    assert recent.total == 1234
    assert [b.id for b in arrivals] == ["OL2W"]
    assert book.id == "OL7W"
