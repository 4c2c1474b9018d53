"""Tests for the persistent citation store."""

import asyncio
from datetime import timedelta

from citation_cache.cache.citation_store import CitationKey, CitationStore
from citation_cache.db.database import create_engine, create_session_maker


class TestGetAndUpsert:
    """Tests for reads and writes."""

    async def test_missing_key_returns_none(self, store, key):
        assert await store.get(key) is None

    async def test_upsert_then_get_round_trips(self, store, key, clock, sample_talks):
        fetched_at = clock() - timedelta(minutes=5)
        assert await store.upsert(key, sample_talks, fetched_at) is True

        record = await store.get(key)
        assert record is not None
        assert record.key == key
        assert record.talks == sample_talks
        assert record.fetched_at == fetched_at
        assert record.stale is False

    async def test_empty_talks_are_not_cached(self, store, key, clock):
        assert await store.upsert(key, [], clock()) is False
        assert await store.get(key) is None

    async def test_empty_talks_do_not_overwrite_existing(self, store, key, clock, sample_talks):
        fetched_at = clock()
        await store.upsert(key, sample_talks, fetched_at)
        clock.advance(hours=1)

        await store.upsert(key, [], clock())

        record = await store.get(key)
        assert record.talks == sample_talks
        assert record.fetched_at == fetched_at

    async def test_upsert_overwrites_instead_of_merging(self, store, key, clock, sample_talks):
        await store.upsert(key, sample_talks, clock())
        clock.advance(hours=2)
        replacement = [{"title": "Only This One"}]

        await store.upsert(key, replacement, clock())

        record = await store.get(key)
        assert record.talks == replacement
        assert record.fetched_at == clock()

    async def test_upsert_is_idempotent(self, store, key, clock, sample_talks):
        fetched_at = clock()
        await store.upsert(key, sample_talks, fetched_at)
        first = await store.get(key)
        await store.upsert(key, sample_talks, fetched_at)
        second = await store.get(key)

        assert first == second
        assert (await store.stats())["total_entries"] == 1

    async def test_keys_are_distinct_per_verse_spec(self, store, clock):
        one = CitationKey(book_id=205, chapter=3, verse_spec="7")
        range_ = CitationKey(book_id=205, chapter=3, verse_spec="7-8")
        await store.upsert(one, [{"title": "A"}], clock())
        await store.upsert(range_, [{"title": "B"}], clock())

        assert (await store.get(one)).talks == [{"title": "A"}]
        assert (await store.get(range_)).talks == [{"title": "B"}]

    async def test_talks_are_stored_verbatim(self, store, key, clock):
        talks = [{"title": "Nested", "extra": {"tags": ["a", "b"], "rank": 1}}, "plain string"]
        await store.upsert(key, talks, clock())

        assert (await store.get(key)).talks == talks

    async def test_concurrent_writers_last_write_wins(self, store, key, clock):
        first = [{"title": "First"}]
        second = [{"title": "Second"}]

        await asyncio.gather(
            store.upsert(key, first, clock()),
            store.upsert(key, second, clock()),
        )

        record = await store.get(key)
        assert record.talks in (first, second)
        assert (await store.stats())["total_entries"] == 1

    async def test_records_survive_a_new_engine(self, store, key, clock, db_url, sample_talks):
        await store.upsert(key, sample_talks, clock())

        engine = create_engine(db_url)
        try:
            reopened = CitationStore(
                create_session_maker(engine),
                stale_after=timedelta(hours=24),
                clock=clock,
            )
            record = await reopened.get(key)
        finally:
            await engine.dispose()

        assert record.talks == sample_talks


class TestFreshness:
    """Tests for the derived staleness flag."""

    async def test_recent_record_is_fresh(self, store, key, clock, sample_talks):
        await store.upsert(key, sample_talks, clock() - timedelta(hours=2))

        record = await store.get(key)
        assert record.stale is False

    async def test_old_record_is_stale_but_still_returned(self, store, key, clock, sample_talks):
        await store.upsert(key, sample_talks, clock() - timedelta(hours=48))

        record = await store.get(key)
        assert record.stale is True
        assert record.talks == sample_talks

    async def test_record_exactly_at_threshold_is_fresh(self, store, key, clock, sample_talks):
        await store.upsert(key, sample_talks, clock() - timedelta(hours=24))

        assert (await store.get(key)).stale is False

    async def test_staleness_follows_the_clock(self, store, key, clock, sample_talks):
        await store.upsert(key, sample_talks, clock())
        assert (await store.get(key)).stale is False

        clock.advance(hours=25)
        assert (await store.get(key)).stale is True


class TestSweep:
    """Tests for eviction of old records."""

    async def _seed(self, store, clock):
        ages = {"1": 1, "2": 10, "3": 40, "4": 400}
        for verse, days in ages.items():
            key = CitationKey(book_id=218, chapter=12, verse_spec=verse)
            await store.upsert(key, [{"title": f"Talk {verse}"}], clock() - timedelta(days=days))

    async def test_sweep_removes_only_records_past_eviction(self, store, clock):
        await self._seed(store, clock)
        kept_key = CitationKey(book_id=218, chapter=12, verse_spec="2")
        before = await store.get(kept_key)

        evicted = await store.sweep_stale(timedelta(days=30))

        assert evicted == 2
        assert await store.get(CitationKey(book_id=218, chapter=12, verse_spec="3")) is None
        assert await store.get(CitationKey(book_id=218, chapter=12, verse_spec="4")) is None
        assert await store.get(CitationKey(book_id=218, chapter=12, verse_spec="1")) is not None
        assert await store.get(kept_key) == before

    async def test_second_sweep_is_a_no_op(self, store, clock):
        await self._seed(store, clock)

        assert await store.sweep_stale(timedelta(days=30)) == 2
        assert await store.sweep_stale(timedelta(days=30)) == 0
        assert (await store.stats())["total_entries"] == 2

    async def test_sweep_on_empty_store(self, store):
        assert await store.sweep_stale(timedelta(days=30)) == 0


class TestStats:
    """Tests for cache statistics."""

    async def test_stats_split_fresh_and_stale(self, store, clock):
        await store.upsert(CitationKey(1, 1, "1"), [{"title": "a"}], clock())
        await store.upsert(CitationKey(1, 1, "2"), [{"title": "b"}], clock() - timedelta(days=2))

        assert await store.stats() == {
            "total_entries": 2,
            "stale_entries": 1,
            "fresh_entries": 1,
        }
