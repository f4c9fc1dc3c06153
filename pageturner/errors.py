"""Error types raised by the catalog client and service."""
from typing import Optional


class CatalogError(Exception):
    """Base class for every catalog failure."""


class InvalidArgument(CatalogError, ValueError):
    """Caller input was rejected before any network call."""


class UpstreamError(CatalogError):
    """
    The upstream catalog could not be used.

    Covers timeouts, connection failures, non-2xx statuses and bodies
    missing their expected top-level fields.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.cause = cause
        self.status_code = status_code


class NotFound(CatalogError):
    """A detail lookup named a work the catalog does not know."""

    def __init__(self, work_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"Work not found: {work_id}")
        self.work_id = work_id
        self.cause = cause
