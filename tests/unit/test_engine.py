"""Tests for QueryEngine: caching, pagination, errors, history and state."""

import asyncio
from datetime import datetime, timedelta

import pytest

from jobquery.core.config import EngineConfig
from jobquery.core.errors import DataSourceError, NotFoundError, PersistenceError, ValidationError
from jobquery.core.schemas import Listing, SortSpec
from jobquery.search.cache import ResultCache
from jobquery.search.engine import QueryEngine
from jobquery.search.filters import MAX_SALARY, FilterSet
from jobquery.search.persistence import (
    RECENT_SEARCHES_KEY,
    SAVED_SEARCHES_KEY,
    STATE_KEY,
    InMemoryPersistence,
    SearchStatePersistence,
)
from jobquery.search.ranker import sort_listings
from jobquery.sources.base import DataSource, QueryHints

NOW = datetime(2026, 5, 4, 10, 30)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class MockSource(DataSource):
    """Returns pre-configured listings and records every call."""

    def __init__(self, listings: list[Listing]) -> None:
        self._listings = listings
        self.calls: list[QueryHints] = []

    @property
    def source_id(self) -> str:
        return "mock"

    async def fetch_candidates(self, hints: QueryHints) -> list[Listing]:
        self.calls.append(hints)
        return list(self._listings)


class FlakySource(MockSource):
    """Raises the given error on the first ``failures`` calls."""

    def __init__(self, listings: list[Listing], error: Exception, failures: int = 1) -> None:
        super().__init__(listings)
        self._error = error
        self._failures = failures

    async def fetch_candidates(self, hints: QueryHints) -> list[Listing]:
        self.calls.append(hints)
        if len(self.calls) <= self._failures:
            raise self._error
        return list(self._listings)


class SlowSource(MockSource):
    async def fetch_candidates(self, hints: QueryHints) -> list[Listing]:
        self.calls.append(hints)
        await asyncio.sleep(5)
        return list(self._listings)


class BrokenPersistence(SearchStatePersistence):
    def load(self, key: str) -> str | None:
        msg = "disk on fire"
        raise PersistenceError(msg)

    def save(self, key: str, payload: str) -> None:
        msg = "disk on fire"
        raise PersistenceError(msg)


def _listing(
    id: str,
    *,
    title: str = "Engineer",
    location: str = "Austin, TX",
    salary_min: int = 90_000,
    salary_max: int = 120_000,
    type: str = "full_time",
    remote: bool = False,
    days_old: int = 0,
) -> Listing:
    return Listing(
        id=id,
        title=title,
        company="Acme",
        location=location,
        salary_min=salary_min,
        salary_max=salary_max,
        type=type,  # type: ignore[arg-type]
        posted_at=NOW - timedelta(days=days_old),
        remote=remote,
    )


def _engine(
    listings: list[Listing] | None = None,
    *,
    source: DataSource | None = None,
    page_size: int = 20,
    **kwargs: object,
) -> QueryEngine:
    source = source or MockSource(listings or [])
    return QueryEngine(
        source,
        config=EngineConfig(page_size=page_size),
        clock=lambda: NOW,
        **kwargs,  # type: ignore[arg-type]
    )


def _scenario_listings() -> list[Listing]:
    return [
        _listing("A", title="Senior Developer", salary_min=90_000, salary_max=120_000),
        _listing("B", title="Designer", salary_min=100_000, salary_max=130_000),
        _listing("C", title="Junior Developer", salary_min=40_000, salary_max=60_000),
    ]


# ---------------------------------------------------------------------------
# execute()
# ---------------------------------------------------------------------------


class TestExecute:
    async def test_developer_scenario(self) -> None:
        engine = _engine(_scenario_listings())
        engine.set_filter("keywords", "developer")
        engine.set_filter("salary_range", (80_000, 150_000))

        page = await engine.execute()

        assert [listing.id for listing in page.items] == ["A"]
        assert page.total_results == 1
        assert page.total_pages == 1
        assert page.page_number == 1

    async def test_repeat_is_identical_and_cached(self) -> None:
        source = MockSource(_scenario_listings())
        engine = _engine(source=source)
        engine.set_filter("keywords", "developer")

        first = await engine.execute()
        second = await engine.execute()

        assert second is first
        assert len(source.calls) == 1

    async def test_mutation_triggers_recompute(self) -> None:
        source = MockSource(_scenario_listings())
        engine = _engine(source=source)
        await engine.execute()
        engine.set_filter("keywords", "designer")
        page = await engine.execute()
        assert [listing.id for listing in page.items] == ["B"]
        assert len(source.calls) == 2

    async def test_reverting_filter_hits_cache(self) -> None:
        source = MockSource(_scenario_listings())
        engine = _engine(source=source)
        first = await engine.execute()
        engine.set_filter("keywords", "designer")
        await engine.execute()
        engine.remove_filter("keywords")
        assert await engine.execute() is first
        assert len(source.calls) == 2

    async def test_stale_cache_recomputes(self) -> None:
        now = [0.0]
        cache = ResultCache(ttl_seconds=300, clock=lambda: now[0])
        source = MockSource(_scenario_listings())
        engine = _engine(source=source, cache=cache)
        await engine.execute()
        now[0] = 301.0
        await engine.execute()
        assert len(source.calls) == 2

    async def test_clear_all_invalidates_nothing(self) -> None:
        cache = ResultCache()
        engine = _engine(_scenario_listings(), cache=cache)
        engine.set_filter("keywords", "developer")
        await engine.execute()
        assert len(cache) == 1
        engine.clear_all()
        assert len(cache) == 1
        assert engine.filters.model_dump() == FilterSet().model_dump()

    async def test_dirty_flag(self) -> None:
        engine = _engine(_scenario_listings())
        assert engine.dirty is True
        await engine.execute()
        assert engine.dirty is False
        engine.toggle_skill("Python")
        assert engine.dirty is True

    async def test_hints_passed_to_source(self) -> None:
        source = MockSource([])
        engine = _engine(source=source, page_size=7)
        engine.set_filter("keywords", "python")
        engine.set_filter("location", "Austin")
        engine.set_filter("job_type", ["contract"])
        engine.set_sort("date", "asc")
        await engine.execute()

        hints = source.calls[0]
        assert hints.keywords == "python"
        assert hints.location == "Austin"
        assert hints.job_types == ("contract",)
        assert hints.sort_field == "date"
        assert hints.sort_order == "asc"
        assert hints.per_page == 7
        assert hints.salary_max == MAX_SALARY

    async def test_remote_listing_passes_location_filter(self) -> None:
        engine = _engine([
            _listing("remote", location="Remote", remote=True),
            _listing("austin", location="Austin, TX"),
            _listing("denver", location="Denver, CO"),
        ])
        engine.set_filter("location", "Austin, TX")
        page = await engine.execute()
        # Location match scores +20, so the Austin listing ranks first.
        assert [listing.id for listing in page.items] == ["austin", "remote"]

    async def test_sort_by_salary_ascending(self) -> None:
        engine = _engine([
            _listing("mid", salary_max=150_000),
            _listing("low", salary_max=100_000),
            _listing("high", salary_max=200_000),
        ])
        engine.set_sort("salary", "asc")
        page = await engine.execute()
        assert [listing.id for listing in page.items] == ["low", "mid", "high"]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class TestPagination:
    async def test_pages_partition_ranked_results(self) -> None:
        listings = [
            _listing(f"job-{i}", title="Developer" if i % 3 else "Senior Developer", days_old=i)
            for i in range(45)
        ]
        engine = _engine(listings, page_size=10)
        engine.set_filter("keywords", "developer")

        first = await engine.execute()
        collected = list(first.items)
        for n in range(2, first.total_pages + 1):
            engine.goto_page(n)
            page = await engine.execute()
            assert page.page_number == n
            collected.extend(page.items)

        assert first.total_pages == 5
        assert len(collected) == first.total_results == 45
        assert len({listing.id for listing in collected}) == 45
        expected = sort_listings(listings, SortSpec(), engine.filters)
        assert collected == expected

    async def test_page_past_end_clamped(self) -> None:
        engine = _engine([_listing(str(i)) for i in range(5)], page_size=2)
        engine.goto_page(10)
        page = await engine.execute()
        assert page.page_number == 3
        assert [listing.id for listing in page.items] == ["4"]

    async def test_empty_results_page_one(self) -> None:
        engine = _engine([])
        engine.goto_page(4)
        page = await engine.execute()
        assert page.page_number == 1
        assert page.total_pages == 0
        assert page.items == ()

    async def test_filter_change_resets_page(self) -> None:
        engine = _engine([_listing(str(i)) for i in range(50)], page_size=10)
        engine.goto_page(3)
        engine.set_filter("remote_only", False)
        assert engine.page_number == 1

    @pytest.mark.parametrize("bad", [0, -1, 1.5, "2", True])
    def test_invalid_page_rejected(self, bad: object) -> None:
        engine = _engine([])
        engine.goto_page(2)
        with pytest.raises(ValidationError):
            engine.goto_page(bad)  # type: ignore[arg-type]
        assert engine.page_number == 2


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    async def test_data_source_error_not_cached(self) -> None:
        source = FlakySource(_scenario_listings(), DataSourceError("upstream 503"))
        cache = ResultCache()
        engine = _engine(source=source, cache=cache)

        with pytest.raises(DataSourceError, match="upstream 503"):
            await engine.execute()
        assert len(cache) == 0
        assert engine.last_page is None
        assert engine.recent_searches() == []

        page = await engine.execute()
        assert page.total_results == 3
        assert len(source.calls) == 2

    async def test_unexpected_error_wrapped(self) -> None:
        boom = ConnectionError("reset by peer")
        engine = _engine(source=FlakySource([], boom))
        with pytest.raises(DataSourceError) as exc_info:
            await engine.execute()
        assert exc_info.value.cause is boom

    async def test_timeout_is_data_source_error(self) -> None:
        engine = QueryEngine(
            SlowSource([]),
            config=EngineConfig(fetch_timeout_seconds=0.05),
        )
        with pytest.raises(DataSourceError, match="timed out"):
            await engine.execute()

    async def test_zero_results_is_not_an_error(self) -> None:
        page = await _engine([]).execute()
        assert page.total_results == 0

    def test_validation_error_leaves_state(self) -> None:
        engine = _engine([])
        engine.set_filter("salary_range", (10_000, 20_000))
        with pytest.raises(ValidationError):
            engine.set_filter("salary_range", ("abc", 20_000))
        assert engine.filters.salary_range == (10_000, 20_000)

    def test_unknown_field_fails_fast(self) -> None:
        with pytest.raises(KeyError):
            _engine([]).set_filter("colour", "red")

    def test_invalid_sort(self) -> None:
        engine = _engine([])
        with pytest.raises(ValidationError):
            engine.set_sort("popularity")
        with pytest.raises(ValidationError):
            engine.set_sort("date", "sideways")
        assert engine.sort == SortSpec()


# ---------------------------------------------------------------------------
# Saved and recent searches
# ---------------------------------------------------------------------------


class TestSearchHistory:
    async def test_recent_recorded_each_execute(self) -> None:
        engine = _engine(_scenario_listings())
        engine.set_filter("keywords", "developer")
        engine.set_filter("location", "Austin")
        await engine.execute()
        await engine.execute()
        recent = engine.recent_searches()
        assert len(recent) == 2
        assert recent[0].keywords == "developer"
        assert recent[0].location == "Austin"
        assert recent[0].timestamp == NOW

    async def test_recent_capacity(self) -> None:
        engine = _engine([])
        for n in range(6):
            engine.set_filter("keywords", f"q{n}")
            await engine.execute()
        assert [r.keywords for r in engine.recent_searches()] == ["q5", "q4", "q3", "q2", "q1"]

    async def test_save_uses_last_result_count(self) -> None:
        engine = _engine(_scenario_listings())
        engine.set_filter("keywords", "developer")
        await engine.execute()
        saved = engine.save_current_search("Dev jobs")
        assert saved.name == "Dev jobs"
        assert saved.result_count == 2
        assert saved.filters.keywords == "developer"
        assert engine.saved_searches() == [saved]

    def test_save_blank_name_gets_date(self) -> None:
        saved = _engine([]).save_current_search("  ")
        assert saved.name == "Search 2026-05-04"
        assert saved.result_count == 0

    def test_saved_snapshot_not_affected_by_later_edits(self) -> None:
        engine = _engine([])
        engine.toggle_skill("Python")
        saved = engine.save_current_search("py")
        engine.toggle_skill("Go")
        assert saved.filters.skills == ["Python"]

    def test_eleventh_save_drops_oldest(self) -> None:
        engine = _engine([])
        ids = [engine.save_current_search(f"s{n}").id for n in range(11)]
        saved_ids = [s.id for s in engine.saved_searches()]
        assert len(saved_ids) == 10
        assert ids[0] not in saved_ids
        assert saved_ids[0] == ids[-1]

    async def test_load_replaces_state_and_executes(self) -> None:
        source = MockSource(_scenario_listings())
        engine = _engine(source=source)
        engine.set_filter("keywords", "designer")
        engine.set_sort("salary", "asc")
        saved = engine.save_current_search("design")

        engine.clear_all()
        engine.set_sort("date")
        engine.goto_page(3)

        page = await engine.load_saved_search(saved.id)

        assert engine.filters.keywords == "designer"
        assert engine.sort == SortSpec(field="salary", order="asc")
        assert engine.page_number == 1
        assert [listing.id for listing in page.items] == ["B"]
        assert engine.dirty is False

    async def test_load_unknown_leaves_state(self) -> None:
        engine = _engine([])
        engine.set_filter("keywords", "python")
        with pytest.raises(NotFoundError):
            await engine.load_saved_search("search-missing")
        assert engine.filters.keywords == "python"

    def test_delete(self) -> None:
        engine = _engine([])
        keep = engine.save_current_search("keep")
        drop = engine.save_current_search("drop")
        assert engine.delete_saved_search(drop.id) == drop
        assert engine.saved_searches() == [keep]
        with pytest.raises(NotFoundError):
            engine.delete_saved_search(drop.id)

    async def test_saved_searches_cannot_be_edited_outside_engine(self) -> None:
        store = InMemoryPersistence()
        engine = _engine(_scenario_listings(), persistence=store)
        engine.set_filter("keywords", "developer")
        returned = engine.save_current_search("dev")
        persisted = store.records[SAVED_SEARCHES_KEY]

        returned.filters.set_field("keywords", "edited")
        engine.saved_searches()[0].filters.set_field("keywords", "edited")

        assert engine.saved_searches()[0].filters.keywords == "developer"
        assert store.records[SAVED_SEARCHES_KEY] == persisted
        engine.clear_all()
        page = await engine.load_saved_search(returned.id)
        assert engine.filters.keywords == "developer"
        assert page.total_results == 2


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    async def test_state_survives_restart(self) -> None:
        store = InMemoryPersistence()
        engine = _engine(_scenario_listings(), persistence=store)
        engine.set_filter("keywords", "developer")
        engine.toggle_skill("Python")
        engine.set_sort("date", "asc")
        saved = engine.save_current_search("mine")
        await engine.execute()

        restarted = _engine([], persistence=store)

        assert restarted.filters.keywords == "developer"
        assert restarted.filters.skills == ["Python"]
        assert restarted.sort == SortSpec(field="date", order="asc")
        assert [s.id for s in restarted.saved_searches()] == [saved.id]
        assert len(restarted.recent_searches()) == 1

    def test_records_written_under_independent_keys(self) -> None:
        store = InMemoryPersistence()
        engine = _engine([], persistence=store)
        engine.set_filter("keywords", "x")
        engine.save_current_search("x")
        assert set(store.records) == {STATE_KEY, SAVED_SEARCHES_KEY}

    def test_corrupted_records_fall_back_to_defaults(self) -> None:
        store = InMemoryPersistence()
        store.save(STATE_KEY, "{definitely not json")
        store.save(SAVED_SEARCHES_KEY, '[{"id": 1}]')
        store.save(RECENT_SEARCHES_KEY, '"wrong shape"')

        engine = _engine([], persistence=store)

        assert engine.filters.model_dump() == FilterSet().model_dump()
        assert engine.sort == SortSpec()
        assert engine.saved_searches() == []
        assert engine.recent_searches() == []

    def test_one_corrupted_record_does_not_affect_others(self) -> None:
        store = InMemoryPersistence()
        first = _engine([], persistence=store)
        first.set_filter("keywords", "kept")
        store.save(SAVED_SEARCHES_KEY, "garbage")
        assert _engine([], persistence=store).filters.keywords == "kept"

    async def test_broken_backend_keeps_engine_usable(self) -> None:
        engine = _engine(_scenario_listings(), persistence=BrokenPersistence())
        engine.set_filter("keywords", "developer")
        engine.save_current_search("still works")
        page = await engine.execute()
        assert page.total_results == 2
        assert len(engine.saved_searches()) == 1


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestSessions:
    async def test_shared_cache_serves_other_session(self) -> None:
        cache = ResultCache()
        source = MockSource(_scenario_listings())
        alice = _engine(source=source, cache=cache)
        bob = _engine(source=source, cache=cache)
        alice.set_filter("keywords", "developer")
        bob.set_filter("keywords", "developer")

        page = await alice.execute()
        assert await bob.execute() is page
        assert len(source.calls) == 1

    async def test_sessions_keep_separate_state(self) -> None:
        cache = ResultCache()
        source = MockSource(_scenario_listings())
        alice = _engine(source=source, cache=cache)
        bob = _engine(source=source, cache=cache)
        alice.set_filter("keywords", "designer")
        await alice.execute()
        assert bob.filters.keywords == ""
        assert bob.recent_searches() == []

    async def test_shared_cache_respects_page_size(self) -> None:
        cache = ResultCache()
        source = MockSource([_listing(f"job-{i}") for i in range(50)])
        small = _engine(source=source, cache=cache, page_size=10)
        large = _engine(source=source, cache=cache, page_size=20)

        small_page = await small.execute()
        large_page = await large.execute()

        assert large_page is not small_page
        assert (small_page.page_size, len(small_page.items), small_page.total_pages) == (10, 10, 5)
        assert (large_page.page_size, len(large_page.items), large_page.total_pages) == (20, 20, 3)
        assert len(cache) == 2

    async def test_concurrent_executes_serialized(self) -> None:
        source = MockSource(_scenario_listings())
        engine = _engine(source=source)
        first, second = await asyncio.gather(engine.execute(), engine.execute())
        assert first is second
        assert len(source.calls) == 1
