"""
Exception types raised by the search engine and its collaborators.

Routes translate these into HTTP responses; nothing here ever corrupts the
shared catalog or embedding state, so every failure is local to one request.
"""

from typing import Optional


class SearchError(Exception):
    """Base class for all search engine failures."""


class InvalidLimitError(SearchError, ValueError):
    """Raised when a result limit is zero or negative."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Result limit must be a positive integer, got {limit}")
        self.limit = limit


class UnsupportedLocaleError(SearchError, ValueError):
    """Raised when no lexicon/catalog pairing exists for a locale."""

    def __init__(self, locale: str) -> None:
        super().__init__(f"Unsupported locale: {locale!r}")
        self.locale = locale


class MissingEmbeddingError(SearchError):
    """Raised when semantic ranking is requested without embedding data."""


class EmbeddingProviderError(SearchError):
    """
    Raised when the external embedding provider fails.

    Attributes:
        retryable: Whether the same request may succeed if sent again.
        status_code: Upstream HTTP status, when the provider answered at all.
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class CatalogLoadError(SearchError):
    """Raised when a catalog or embedding file cannot be loaded."""
