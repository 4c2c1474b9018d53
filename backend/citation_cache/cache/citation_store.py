"""Persistent citation cache.

Records are keyed by an already-normalized ``CitationKey`` and hold the talks
list exactly as the upstream returned it. Freshness is never stored: the
``stale`` flag on a returned record is derived from ``fetched_at`` each time
the record is read.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from citation_cache.db.models import CitationCacheEntry, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CitationKey:
    """Identity of a cached reference. Callers normalize before building one."""
    book_id: int
    chapter: int
    verse_spec: str


@dataclass(frozen=True)
class CitationRecord:
    """A cached citation list as seen at read time."""
    key: CitationKey
    talks: list[Any]
    fetched_at: datetime
    stale: bool


class CitationStore:
    """Durable key-value store for citation lists.

    All operations open their own session, so callers never coordinate
    locking; concurrent writers to the same key end up last-write-wins.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        stale_after: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_maker = session_maker
        self.stale_after = stale_after
        self._clock = clock

    def is_stale(self, fetched_at: datetime, now: Optional[datetime] = None) -> bool:
        """Whether a record fetched at ``fetched_at`` is past the staleness threshold."""
        now = now or self._clock()
        return (now - fetched_at) > self.stale_after

    async def get(self, key: CitationKey) -> Optional[CitationRecord]:
        """Get the cached record for a key, or None if nothing is stored."""
        async with self._session_maker() as session:
            result = await session.execute(
                select(CitationCacheEntry.talks_json, CitationCacheEntry.fetched_at).where(
                    CitationCacheEntry.book_id == key.book_id,
                    CitationCacheEntry.chapter == key.chapter,
                    CitationCacheEntry.verse_spec == key.verse_spec,
                )
            )
            row = result.first()

        if row is None:
            return None

        talks, fetched_at = row
        return CitationRecord(
            key=key,
            talks=list(talks or []),
            fetched_at=fetched_at,
            stale=self.is_stale(fetched_at),
        )

    async def upsert(self, key: CitationKey, talks: Sequence[Any], fetched_at: datetime) -> bool:
        """Store ``talks`` for a key, replacing any existing record.

        Empty results are never cached; the call is a no-op and returns False.
        """
        if not talks:
            logger.debug("Ignoring empty citation write for %s", key)
            return False

        values = {
            "book_id": key.book_id,
            "chapter": key.chapter,
            "verse_spec": key.verse_spec,
            "talks_json": list(talks),
            "fetched_at": fetched_at,
        }

        async with self._session_maker() as session:
            insert = _dialect_insert(session)
            stmt = insert(CitationCacheEntry).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["book_id", "chapter", "verse_spec"],
                set_={
                    "talks_json": stmt.excluded.talks_json,
                    "fetched_at": stmt.excluded.fetched_at,
                    "updated_at": self._clock(),
                },
            )
            await session.execute(stmt)
            await session.commit()

        return True

    async def sweep_stale(self, evict_after: timedelta) -> int:
        """Delete every record older than ``evict_after``.

        Returns:
            Number of records removed
        """
        cutoff = self._clock() - evict_after
        async with self._session_maker() as session:
            result = await session.execute(
                delete(CitationCacheEntry).where(CitationCacheEntry.fetched_at < cutoff)
            )
            await session.commit()
        return result.rowcount or 0

    async def stats(self) -> dict:
        """Get cache statistics."""
        stale_cutoff = self._clock() - self.stale_after
        async with self._session_maker() as session:
            total = await session.scalar(select(func.count()).select_from(CitationCacheEntry))
            stale = await session.scalar(
                select(func.count())
                .select_from(CitationCacheEntry)
                .where(CitationCacheEntry.fetched_at < stale_cutoff)
            )

        total = total or 0
        stale = stale or 0
        return {
            "total_entries": total,
            "stale_entries": stale,
            "fresh_entries": total - stale,
        }


def _dialect_insert(session: AsyncSession):
    """Pick the INSERT construct that supports ON CONFLICT for this backend."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Unsupported database dialect for citation cache: {dialect}")
