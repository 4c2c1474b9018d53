"""Errors surfaced by the citation lookup path."""


class CitationCacheError(Exception):
    """Base class for citation lookup failures the caller should see."""


class InvalidReferenceError(CitationCacheError):
    """The requested reference is malformed or can't be mapped. Not retryable."""


class UpstreamUnavailableError(CitationCacheError):
    """The citation index failed or timed out and no cached data exists. Retryable."""
