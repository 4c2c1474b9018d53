"""Citation lookup API endpoints."""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from citation_cache.cache.coordinator import CacheCoordinator
from citation_cache.cache.errors import InvalidReferenceError, UpstreamUnavailableError
from citation_cache.references.normalize import normalize_reference


router = APIRouter()


class CitationsResponse(BaseModel):
    """Talks citing a scripture reference."""
    bookId: int
    chapter: int
    verseSpec: str
    talks: list[Any]
    source: Literal["cache-fresh", "cache-stale", "live"]


class CacheStatsResponse(BaseModel):
    """Citation cache statistics."""
    totalEntries: int
    staleEntries: int
    freshEntries: int
    pendingRefreshes: int
    circuitBreaker: Optional[dict[str, Any]] = None


def get_coordinator(request: Request) -> CacheCoordinator:
    """Dependency for the coordinator built at startup."""
    return request.app.state.coordinator


@router.get("/citations", response_model=CitationsResponse)
async def get_citations(
    volume: Optional[str] = Query(None, description="Volume key, e.g. book-of-mormon"),
    book: Optional[str] = Query(None, description="Book key, e.g. 1-nephi"),
    chapter: Optional[str] = Query(None, description="Chapter number"),
    verses: Optional[str] = Query(None, description="Verse or range, e.g. 1 or 1-2"),
    coordinator: CacheCoordinator = Depends(get_coordinator),
):
    """Get the talks that cite a scripture passage.

    Served from the cache when possible; stale entries are returned
    immediately and refreshed in the background.
    """
    try:
        reference = normalize_reference(volume, book, chapter, verses)
        result = await coordinator.resolve_citations(
            reference.book_id,
            reference.chapter,
            reference.verse_spec,
        )
    except InvalidReferenceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamUnavailableError:
        raise HTTPException(status_code=502, detail="Failed to load citations")

    return CitationsResponse(
        bookId=result.key.book_id,
        chapter=result.key.chapter,
        verseSpec=result.key.verse_spec,
        talks=result.talks,
        source=result.source,
    )


@router.get("/citations/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats(coordinator: CacheCoordinator = Depends(get_coordinator)):
    """Get citation cache statistics."""
    stats = await coordinator.store.stats()
    return CacheStatsResponse(
        totalEntries=stats["total_entries"],
        staleEntries=stats["stale_entries"],
        freshEntries=stats["fresh_entries"],
        pendingRefreshes=coordinator.pending_refreshes,
        circuitBreaker=coordinator.breaker.snapshot() if coordinator.breaker else None,
    )
