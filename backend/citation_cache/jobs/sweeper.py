"""Staleness sweep for the citation cache."""

import logging
from datetime import timedelta
from typing import Optional

from citation_cache.cache.citation_store import CitationStore
from citation_cache.config import Settings, get_settings
from citation_cache.db.database import create_session_maker, init_db

logger = logging.getLogger(__name__)


class StalenessSweeper:
    """Evicts cached citations that are far past their freshness.

    Evicted keys are not re-fetched here; the next lookup simply misses and
    goes to the upstream.
    """

    def __init__(self, store: CitationStore, evict_after: timedelta):
        self.store = store
        self.evict_after = evict_after

    async def run(self) -> int:
        """Run one sweep and return the number of evicted records."""
        evicted = await self.store.sweep_stale(self.evict_after)
        logger.info("Citation sweep evicted %d entries older than %s", evicted, self.evict_after)
        return evicted


async def sweep_stale_citations(settings: Optional[Settings] = None) -> int:
    """Scheduled entry point: sweep the configured database once.

    Takes no arguments when called by a scheduler; settings come from the
    environment.
    """
    settings = settings or get_settings()
    engine = await init_db(settings)
    try:
        store = CitationStore(create_session_maker(engine), stale_after=settings.stale_after)
        return await StalenessSweeper(store, settings.evict_after).run()
    finally:
        await engine.dispose()
