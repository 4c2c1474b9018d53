"""Cache-aside coordination with stale-while-revalidate.

A lookup answers from the citation store whenever it has data for the key.
Fresh data is returned as-is; stale data is returned immediately while a
background task re-fetches it. Only a miss waits on the upstream.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Literal, Optional, Protocol

from citation_cache.cache.circuit_breaker import CircuitBreaker
from citation_cache.cache.citation_store import CitationKey, CitationRecord, CitationStore
from citation_cache.cache.errors import InvalidReferenceError, UpstreamUnavailableError
from citation_cache.db.models import utcnow
from citation_cache.references.normalize import is_valid_verse_spec

logger = logging.getLogger(__name__)

CitationSource = Literal["cache-fresh", "cache-stale", "live"]


class CitationFetcher(Protocol):
    """Anything that can load the talks citing a reference from the upstream."""

    async def fetch_citations(self, book_id: int, chapter: int, verse_spec: str) -> list[Any]:
        ...


@dataclass
class CitationResult:
    """Talks for a reference plus where they came from."""
    key: CitationKey
    talks: list[Any]
    source: CitationSource


class CacheCoordinator:
    """Resolves citation lookups against the store, falling back to the upstream."""

    def __init__(
        self,
        store: CitationStore,
        fetcher: CitationFetcher,
        live_timeout: float = 10.0,
        refresh_timeout: Optional[float] = 60.0,
        breaker: Optional[CircuitBreaker] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.fetcher = fetcher
        self.live_timeout = live_timeout
        self.refresh_timeout = refresh_timeout or None
        self.breaker = breaker
        self._clock = clock
        # Strong references keep running refresh tasks from being garbage collected
        self._refresh_tasks: set[asyncio.Task] = set()

    @property
    def pending_refreshes(self) -> int:
        return len(self._refresh_tasks)

    async def resolve_citations(self, book_id: int, chapter: int, verse_spec: str) -> CitationResult:
        """Get the talks citing a reference.

        Raises:
            InvalidReferenceError: the reference is malformed
            UpstreamUnavailableError: nothing is cached and the upstream failed
        """
        key = build_citation_key(book_id, chapter, verse_spec)

        record = await self._lookup(key)
        if record is not None and record.talks:
            if not record.stale:
                return CitationResult(key=key, talks=record.talks, source="cache-fresh")

            self._schedule_refresh(key)
            return CitationResult(key=key, talks=record.talks, source="cache-stale")

        talks = await self._fetch_live(key)
        if talks:
            await self._write(key, talks)
        return CitationResult(key=key, talks=talks, source="live")

    async def drain_refreshes(self) -> None:
        """Wait for all background refreshes started so far to finish."""
        if self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks), return_exceptions=True)

    async def _lookup(self, key: CitationKey) -> Optional[CitationRecord]:
        try:
            return await self.store.get(key)
        except Exception as e:
            logger.warning("Citation cache read failed for %s, treating as miss: %s", key, e)
            return None

    async def _write(self, key: CitationKey, talks: list[Any]) -> None:
        try:
            await self.store.upsert(key, talks, self._clock())
        except Exception as e:
            logger.warning("Citation cache write failed for %s: %s", key, e)

    async def _fetch_live(self, key: CitationKey) -> list[Any]:
        """Fetch for a miss. The only path that reports to the breaker."""
        if self.breaker is None:
            return await self._fetch(key, self.live_timeout)

        if not self.breaker.is_available():
            raise UpstreamUnavailableError("Citation index is temporarily unavailable")
        try:
            talks = await self._fetch(key, self.live_timeout)
        except UpstreamUnavailableError:
            self.breaker.record_failure()
            raise
        self.breaker.record_success()
        return talks

    async def _fetch(self, key: CitationKey, timeout: Optional[float]) -> list[Any]:
        """Call the upstream, translating every failure into UpstreamUnavailableError."""
        try:
            talks = await asyncio.wait_for(
                self.fetcher.fetch_citations(key.book_id, key.chapter, key.verse_spec),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise UpstreamUnavailableError(
                f"Citation index timed out after {timeout}s"
            ) from None
        except Exception as e:
            raise UpstreamUnavailableError(f"Failed to load citations: {e}") from e

        if talks is None:
            raise UpstreamUnavailableError("Citation index returned no data")
        return list(talks)

    def _schedule_refresh(self, key: CitationKey) -> None:
        task = asyncio.create_task(self._refresh(key))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def _refresh(self, key: CitationKey) -> None:
        # Best effort: the triggering request has already been answered
        try:
            talks = await self._fetch(key, self.refresh_timeout)
            if talks:
                await self.store.upsert(key, talks, self._clock())
        except Exception as e:
            logger.debug("Background refresh for %s dropped: %s", key, e)


def build_citation_key(book_id: int, chapter: int, verse_spec: str) -> CitationKey:
    """Validate an already-normalized reference and build its cache key."""
    if isinstance(book_id, bool) or not isinstance(book_id, int) or book_id <= 0:
        raise InvalidReferenceError(f"Invalid book id: {book_id!r}")
    if isinstance(chapter, bool) or not isinstance(chapter, int) or chapter <= 0:
        raise InvalidReferenceError(f"Invalid chapter: {chapter!r}")
    if not isinstance(verse_spec, str) or not is_valid_verse_spec(verse_spec):
        raise InvalidReferenceError(f"Invalid verses: {verse_spec!r}")
    return CitationKey(book_id=book_id, chapter=chapter, verse_spec=verse_spec)
