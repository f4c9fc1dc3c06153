"""Data models for books."""
from dataclasses import dataclass, field
from typing import Optional, List

from pageturner.errors import InvalidArgument


UNKNOWN_AUTHOR = "Unknown Author"
NO_DESCRIPTION = "No description available."


@dataclass
class Query:
    """A search request against the catalog."""
    text: str
    page: int = 1
    limit: int = 20

    def __post_init__(self):
        if self.page < 1:
            raise InvalidArgument(f"page must be >= 1, got {self.page}")
        if self.limit < 1:
            raise InvalidArgument(f"limit must be >= 1, got {self.limit}")

    @property
    def is_blank(self) -> bool:
        return not (self.text or "").strip()


@dataclass
class BookSummary:
    """Normalized book representation used by list views."""
    id: str
    title: str
    authors: List[str] = field(default_factory=lambda: [UNKNOWN_AUTHOR])
    cover_id: Optional[int] = None
    year: Optional[int] = None
    subjects: List[str] = field(default_factory=list)
    category: Optional[str] = None

    @property
    def authors_str(self) -> str:
        """Format authors as comma-separated string."""
        return ", ".join(self.authors)

    @property
    def subjects_str(self) -> str:
        """Format subjects as comma-separated string."""
        return ", ".join(self.subjects) if self.subjects else "None"


@dataclass
class BookDetail:
    """Normalized book representation used by the detail view."""
    id: str
    title: str
    authors: List[str]
    description: str = NO_DESCRIPTION
    subjects: List[str] = field(default_factory=list)
    first_publish_date: Optional[str] = None
    cover_id: Optional[int] = None
    year: Optional[int] = None

    @property
    def authors_str(self) -> str:
        """Format authors as comma-separated string."""
        return ", ".join(self.authors)


@dataclass
class RecentBooks:
    """Filtered listing page plus the upstream match count."""
    items: List[BookSummary]
    total: int
