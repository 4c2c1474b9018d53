"""SQLAlchemy database models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, JSON, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from citation_cache.db.database import Base
from citation_cache.references.normalize import VERSE_SPEC_MAX_LENGTH


def utcnow() -> datetime:
    """Current time as naive UTC, the form every stored datetime uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CitationCacheEntry(Base):
    """Cached list of talks citing one scripture reference."""

    __tablename__ = "citation_cache"

    # Use String for UUID to be compatible with both PostgreSQL and SQLite
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    book_id: Mapped[int] = mapped_column(Integer, nullable=False)
    chapter: Mapped[int] = mapped_column(Integer, nullable=False)
    verse_spec: Mapped[str] = mapped_column(String(VERSE_SPEC_MAX_LENGTH), nullable=False)
    talks_json: Mapped[list] = mapped_column(JSON, nullable=False)
    # Structure: list of talk dicts exactly as returned by the upstream fetcher
    fetched_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("book_id", "chapter", "verse_spec", name="uq_citation_cache_ref"),
        Index("ix_citation_cache_fetched_at", "fetched_at"),
    )
