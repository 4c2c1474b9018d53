"""FastAPI application entry point."""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from citation_cache.adapters.byu_citations import ByuCitationAdapter
from citation_cache.api import citations
from citation_cache.cache.circuit_breaker import CircuitBreaker
from citation_cache.cache.citation_store import CitationStore
from citation_cache.cache.coordinator import CacheCoordinator, CitationFetcher
from citation_cache.config import Settings, get_settings
from citation_cache.db.database import create_session_maker, init_db
from citation_cache.jobs.scheduler import run_daily
from citation_cache.jobs.sweeper import StalenessSweeper


def create_app(
    settings: Optional[Settings] = None,
    fetcher: Optional[CitationFetcher] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment
        fetcher: Upstream to use instead of the BYU citation index
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        print("Starting Scripture Citations API...")
        engine = await init_db(settings)
        store = CitationStore(create_session_maker(engine), stale_after=settings.stale_after)

        upstream = fetcher or ByuCitationAdapter(timeout=settings.live_fetch_timeout_seconds)
        breaker = CircuitBreaker(
            name=ByuCitationAdapter.source_name,
            failure_threshold=settings.breaker_failure_threshold,
            timeout_seconds=settings.breaker_timeout_seconds,
        )
        app.state.coordinator = CacheCoordinator(
            store,
            upstream,
            live_timeout=settings.live_fetch_timeout_seconds,
            refresh_timeout=settings.refresh_fetch_timeout_seconds,
            breaker=breaker,
        )

        sweep_task = None
        if settings.sweep_scheduler_enabled:
            sweeper = StalenessSweeper(store, settings.evict_after)
            sweep_task = asyncio.create_task(
                run_daily(sweeper, settings.sweep_hour_utc, settings.sweep_minute_utc)
            )

        print("✓ API ready")
        yield
        print("Shutting down...")

        if sweep_task is not None:
            sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweep_task
        if fetcher is None:
            await upstream.close()
        await engine.dispose()

    app = FastAPI(
        title="Scripture Citations",
        description="Find the general conference talks that cite a scripture passage",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Parse CORS origins from environment variable (comma-separated)
    cors_origins = settings.cors_origins.split(",") if settings.cors_origins else ["*"]
    if "*" in cors_origins:
        allow_origins = ["*"]
    else:
        allow_origins = [origin.strip() for origin in cors_origins]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(citations.router, tags=["citations"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
