"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Optional

import pytest

from citation_cache.cache.citation_store import CitationKey, CitationStore
from citation_cache.cache.coordinator import CacheCoordinator
from citation_cache.db.database import create_engine, create_session_maker, create_tables


class FakeClock:
    """Controllable naive-UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeFetcher:
    """Upstream stand-in that records calls.

    ``gate`` lets a test hold a call open until it sets the event.
    """

    def __init__(
        self,
        talks: Optional[list[Any]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        gate: Optional[asyncio.Event] = None,
    ):
        self.talks = talks if talks is not None else []
        self.error = error
        self.delay = delay
        self.gate = gate
        self.calls: list[tuple[int, int, str]] = []

    async def fetch_citations(self, book_id: int, chapter: int, verse_spec: str) -> list[Any]:
        self.calls.append((book_id, chapter, verse_spec))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.talks)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 15, 12, 0, 0))


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'citations.db'}"


@pytest.fixture
async def engine(db_url):
    engine = create_engine(db_url)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine, clock) -> CitationStore:
    return CitationStore(
        create_session_maker(engine),
        stale_after=timedelta(hours=24),
        clock=clock,
    )


@pytest.fixture
def key() -> CitationKey:
    return CitationKey(book_id=1, chapter=3, verse_spec="16")


@pytest.fixture
def sample_talks() -> list[dict]:
    return [
        {
            "id": "2019-O:3",
            "title": "The Power of Faith",
            "speaker": "Nelson",
            "year": "2019",
            "session": "October",
            "talkId": "12345",
        },
        {
            "id": "2015-A:7",
            "title": "Hope in Christ",
            "speaker": "Eyring",
            "year": "2015",
            "session": "April",
        },
    ]


@pytest.fixture
def make_fetcher():
    """Factory for fake upstreams."""
    return FakeFetcher


@pytest.fixture
def make_coordinator(store, clock):
    """Factory for coordinators sharing the test store and clock."""
    def _make(fetcher, **kwargs) -> CacheCoordinator:
        kwargs.setdefault("live_timeout", 1.0)
        kwargs.setdefault("refresh_timeout", 1.0)
        return CacheCoordinator(store, fetcher, clock=clock, **kwargs)
    return _make
