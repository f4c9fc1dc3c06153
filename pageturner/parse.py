"""Parse and normalize Open Library API responses."""
import re
import uuid
from typing import Dict, Any, List, Optional, Sequence

from pageturner.errors import InvalidArgument
from pageturner.models import BookSummary, BookDetail, NO_DESCRIPTION, UNKNOWN_AUTHOR


# Tested in this order; first match wins
CATEGORIES = ("Novel", "Science", "Romance", "Horror", "Comedy")
DEFAULT_CATEGORY = "Novel"
ALL_CATEGORIES = "All"

COVER_SIZES = ("S", "M", "L")
DEFAULT_COVER_SIZE = "M"


def derive_id(key: Optional[str]) -> str:
    """
    Derive a stable book ID from an upstream key.

    Args:
        key: Upstream key such as "/works/OL12345W"

    Returns:
        The last path segment, or a random token when the key is missing
    """
    if isinstance(key, str):
        segment = key.rstrip("/").split("/")[-1]
        if segment:
            return segment
    return uuid.uuid4().hex


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [v for v in value if isinstance(v, str) and v]


def _optional_int(value: Any) -> Optional[int]:
    # bool is an int subclass
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def to_summary(raw: Dict[str, Any]) -> BookSummary:
    """
    Normalize a single search record.

    Args:
        raw: One entry of the upstream "docs" list

    Returns:
        BookSummary with every default applied
    """
    title = raw.get("title")
    authors = _string_list(raw.get("author_name"))

    return BookSummary(
        id=derive_id(raw.get("key")),
        title=title if isinstance(title, str) else "",
        authors=authors or [UNKNOWN_AUTHOR],
        cover_id=_optional_int(raw.get("cover_i")),
        year=_optional_int(raw.get("first_publish_year")),
        subjects=_string_list(raw.get("subject"))
    )


def is_listable(raw: Dict[str, Any]) -> bool:
    """Listing exclusion filter: needs a title and either a cover or an author."""
    if not raw.get("title"):
        return False
    return bool(raw.get("cover_i") or _string_list(raw.get("author_name")))


def infer_category(subjects: Optional[Sequence[str]]) -> str:
    """
    Pick a display category from upstream subject tags.

    Args:
        subjects: Subject tags, possibly empty

    Returns:
        First label in CATEGORIES found (case-insensitively) inside any subject,
        or DEFAULT_CATEGORY
    """
    lowered = [s.lower() for s in subjects or [] if isinstance(s, str)]
    for label in CATEGORIES:
        needle = label.lower()
        if any(needle in subject for subject in lowered):
            return label
    return DEFAULT_CATEGORY


def extract_description(value: Any) -> Optional[str]:
    """Return description text from a plain string or a /type/text wrapper."""
    if isinstance(value, dict):
        value = value.get("value")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def coalesce(*values: Any, default: Any = None) -> Any:
    """Return the first value that is present (not None and not empty)."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, (str, list, tuple, dict)) and not value:
            continue
        return value
    return default


def _author_names(refs: Any) -> List[str]:
    """
    Reduce work/edition author references to display strings.

    Works carry [{"author": {"key": "/authors/OL1A"}}], editions carry
    [{"key": "/authors/OL1A"}]; some mirrors send plain names.
    """
    names = []
    for ref in refs if isinstance(refs, list) else []:
        if isinstance(ref, str):
            names.append(ref)
            continue
        if not isinstance(ref, dict):
            continue
        inner = ref.get("author") if isinstance(ref.get("author"), dict) else ref
        name = inner.get("name") or ref.get("name")
        key = inner.get("key")
        if isinstance(name, str) and name:
            names.append(name)
        elif isinstance(key, str) and key:
            names.append(derive_id(key))
    return names


def _first_cover(raw: Dict[str, Any]) -> Optional[int]:
    covers = raw.get("covers")
    if isinstance(covers, list):
        for cover in covers:
            # Open Library uses -1 for a removed cover
            cover_id = _optional_int(cover)
            if cover_id is not None and cover_id > 0:
                return cover_id
    return None


def _year_from_date(value: Optional[str]) -> Optional[int]:
    if not isinstance(value, str):
        return None
    match = re.search(r"\d{4}", value)
    return int(match.group()) if match else None


def to_detail(
    raw_work: Dict[str, Any],
    raw_edition: Optional[Dict[str, Any]] = None,
    work_id: Optional[str] = None
) -> BookDetail:
    """
    Merge a work and (optionally) one of its editions into a BookDetail.

    Each output field is resolved on its own: work value if present, else
    edition value, else a default. Edition data never overrides work data.

    Args:
        raw_work: Body of /works/{id}.json
        raw_edition: First entry of /works/{id}/editions.json, if any
        work_id: Requested work ID, used when the work body has no key

    Returns:
        BookDetail
    """
    edition = raw_edition or {}

    description = coalesce(
        extract_description(raw_work.get("description")),
        extract_description(edition.get("description")),
        default=NO_DESCRIPTION
    )
    authors = coalesce(
        _author_names(raw_work.get("authors")),
        _author_names(edition.get("authors")),
        default=[UNKNOWN_AUTHOR]
    )
    subjects = coalesce(
        _string_list(raw_work.get("subjects")),
        _string_list(edition.get("subjects")),
        default=[]
    )
    first_publish_date = coalesce(
        raw_work.get("first_publish_date"),
        edition.get("publish_date")
    )
    title = coalesce(raw_work.get("title"), edition.get("title"), default="")

    return BookDetail(
        id=derive_id(raw_work.get("key") or work_id),
        title=title if isinstance(title, str) else "",
        authors=list(authors),
        description=description,
        subjects=list(subjects),
        first_publish_date=first_publish_date if isinstance(first_publish_date, str) else None,
        cover_id=coalesce(_first_cover(raw_work), _first_cover(edition)),
        year=_year_from_date(first_publish_date)
    )


def parse_search_response(
    response_json: Dict[str, Any],
    listing: bool = False
) -> List[BookSummary]:
    """
    Parse a full /search.json response.

    Args:
        response_json: Complete API response JSON
        listing: Apply the listing exclusion filter and category inference

    Returns:
        List of BookSummary objects in upstream order
    """
    books = []

    for raw in response_json.get("docs") or []:
        if not isinstance(raw, dict):
            continue
        if listing:
            if not is_listable(raw):
                continue
            book = to_summary(raw)
            book.category = infer_category(book.subjects)
        else:
            if not raw.get("title"):
                continue
            book = to_summary(raw)
        books.append(book)

    return books


def cover_image_url(
    base_url: str,
    cover_id: Optional[int],
    size: str = DEFAULT_COVER_SIZE
) -> Optional[str]:
    """
    Build a cover image URL.

    Args:
        base_url: Cover host, e.g. "https://covers.openlibrary.org"
        cover_id: Numeric cover ID
        size: One of S, M, L (anything else falls back to M)

    Returns:
        Image URL, or None without a cover ID
    """
    if not cover_id:
        return None
    size = size.upper() if isinstance(size, str) else DEFAULT_COVER_SIZE
    if size not in COVER_SIZES:
        size = DEFAULT_COVER_SIZE
    return f"{base_url.rstrip('/')}/b/id/{cover_id}-{size}.jpg"

def normalize_category(category: Optional[str]) -> Optional[str]:
    """
    Resolve a category filter to its canonical label.

    Args:
        category: Label in any case, or None/"All" for no filtering

    Returns:
        The matching label from CATEGORIES, or None when nothing is filtered

    Raises:
        InvalidArgument: The label is not a known category
    """
    if category is None or category.strip().lower() == ALL_CATEGORIES.lower():
        return None
    for label in CATEGORIES:
        if label.lower() == category.strip().lower():
            return label
    raise InvalidArgument(f"Unknown category: {category}")


def filter_by_category(
    books: List[BookSummary],
    category: Optional[str] = None
) -> List[BookSummary]:
    """Keep listing books whose inferred category matches, ignoring case."""
    label = normalize_category(category)
    if label is None:
        return list(books)
    return [b for b in books if (b.category or "").lower() == label.lower()]
