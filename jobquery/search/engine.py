"""QueryEngine: one search session over a shared cache and data source.

Data flow for execute():
  1. Cache key from (serialized filters, sort, page, page size)
  2. Fresh cache entry → return the cached Page object unchanged
  3. Miss → data source fetch (bounded by a timeout)
  4. Filter chain → ranking → pagination
  5. Cache store, recent-search record

Mutation methods only change session state and mark it dirty; execute() is
the only operation that reads the cache or the data source. Session state is
written to the persistence backend after every mutation.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from jobquery.core.config import EngineConfig
from jobquery.core.errors import DataSourceError, PersistenceError, ValidationError
from jobquery.core.schemas import Listing, Page, SortSpec, paginate
from jobquery.search.cache import ResultCache, make_cache_key
from jobquery.search.filters import ActiveFilter, FilterSet
from jobquery.search.history import RecentSearch, SavedSearch, SearchHistory, new_search_id
from jobquery.search.matcher import build_filter_chain, run_filter_chain
from jobquery.search.persistence import (
    RECENT_SEARCHES_KEY,
    SAVED_SEARCHES_KEY,
    STATE_KEY,
    InMemoryPersistence,
    SearchStatePersistence,
)
from jobquery.search.ranker import sort_listings
from jobquery.sources.base import DataSource, QueryHints

logger = logging.getLogger(__name__)


class SessionState(BaseModel):
    """The persisted ``state`` record: current filters and sort."""

    filters: FilterSet = Field(default_factory=FilterSet)
    sort: SortSpec = Field(default_factory=SortSpec)


class QueryEngine:
    """A single user's search session.

    Usage::

        engine = QueryEngine(source, cache=shared_cache, persistence=store)
        engine.set_filter("keywords", "python developer")
        engine.toggle_skill("Django")
        page = await engine.execute()

    The cache and data source may be shared between engines; filters, sort,
    page and history belong to this session only.
    """

    def __init__(
        self,
        source: DataSource,
        *,
        cache: ResultCache | None = None,
        persistence: SearchStatePersistence | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._source = source
        self._config = config or EngineConfig()
        self._cache = cache if cache is not None else ResultCache()
        self._persistence = persistence if persistence is not None else InMemoryPersistence()
        self._clock = clock

        self._filters = FilterSet()
        self._sort = SortSpec()
        self._page_number = 1
        self._dirty = True
        self._last_page: Page | None = None
        self._history = SearchHistory(
            saved_capacity=self._config.saved_capacity,
            recent_capacity=self._config.recent_capacity,
        )
        self._lock = asyncio.Lock()

        self._restore()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def filters(self) -> FilterSet:
        """A copy of the current filters. Mutate through the engine methods."""
        return self._filters.snapshot()

    @property
    def sort(self) -> SortSpec:
        return self._sort

    @property
    def page_number(self) -> int:
        return self._page_number

    @property
    def dirty(self) -> bool:
        """True if state changed since the last successful execute()."""
        return self._dirty

    @property
    def last_page(self) -> Page | None:
        return self._last_page

    @property
    def persistence(self) -> SearchStatePersistence:
        return self._persistence

    def active_filters(self) -> list[ActiveFilter]:
        return self._filters.active_filters()

    def recent_searches(self) -> list[RecentSearch]:
        return self._history.recent

    def saved_searches(self) -> list[SavedSearch]:
        return self._history.saved

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_filter(self, field: str, value: Any) -> None:
        """Set one filter field. Resets to page 1.

        Raises:
            KeyError: If the field does not exist.
            ValidationError: If the value is malformed. State is unchanged.
        """
        self._filters.set_field(field, value)
        self._state_changed()

    def toggle_filter(self, field: str, value: str) -> bool:
        """Toggle membership of value in a set-valued filter. Resets to page 1."""
        present = self._filters.toggle_member(field, value)
        self._state_changed()
        return present

    def toggle_skill(self, skill: str) -> bool:
        return self.toggle_filter("skills", skill)

    def remove_filter(self, field: str, value: str | None = None) -> None:
        """Remove a filter (or one member of a set-valued filter). Resets to page 1."""
        self._filters.remove(field, value)
        self._state_changed()

    def clear_all(self) -> None:
        """Reset every filter to its default.

        Cached pages are left alone; they age out by TTL.
        """
        self._filters.clear()
        self._state_changed()
        logger.info("Cleared all filters")

    def set_sort(self, field: str, order: str = "desc") -> None:
        """Change the sort preference. Resets to page 1.

        Raises:
            ValidationError: If field or order is not recognised.
        """
        try:
            sort = SortSpec(field=field, order=order)  # type: ignore[arg-type]
        except PydanticValidationError as e:
            msg = f"Invalid sort: field={field!r}, order={order!r}"
            raise ValidationError(msg) from e
        self._sort = sort
        self._state_changed()

    def goto_page(self, page_number: int) -> None:
        """Select the page fetched by the next execute().

        Pages past the end are clamped when the query runs.

        Raises:
            ValidationError: If page_number is not a positive integer.
        """
        if isinstance(page_number, bool) or not isinstance(page_number, int) or page_number < 1:
            msg = f"page number must be a positive integer, got {page_number!r}"
            raise ValidationError(msg)
        self._page_number = page_number
        self._dirty = True

    # ------------------------------------------------------------------
    # Query execution
    # ------------------------------------------------------------------

    async def execute(self) -> Page:
        """Run the current query and return one ranked page.

        Repeated calls with unchanged state inside the cache TTL return the
        same Page object.

        Raises:
            DataSourceError: If fetching candidates failed or timed out.
                Nothing is cached and session state is unchanged.
        """
        async with self._lock:
            filters = self._filters.snapshot()
            sort = self._sort
            page_number = self._page_number
            key = make_cache_key(
                filters.serialize_key(), sort, page_number, self._config.page_size,
            )

            page = self._cache.get(key)
            if page is None:
                page = await self._compute(filters, sort, page_number)
                self._cache.put(key, page)
            else:
                logger.debug("Served page %d from cache", page.page_number)

            self._last_page = page
            self._dirty = False
            self._record_recent(filters)
            return page

    async def _compute(self, filters: FilterSet, sort: SortSpec, page_number: int) -> Page:
        hints = self._build_hints(filters, sort, page_number)
        candidates = await self._fetch(hints)

        matched = run_filter_chain(candidates, build_filter_chain(filters))
        ranked = sort_listings(matched, sort, filters)
        page = paginate(ranked, page_number, self._config.page_size)

        logger.info(
            "Query '%s' @ '%s': %d candidates, %d matched, page %d/%d",
            filters.keywords, filters.location, len(candidates), len(matched),
            page.page_number, page.total_pages,
        )
        return page

    async def _fetch(self, hints: QueryHints) -> list[Listing]:
        source_id = self._source.source_id
        timeout = self._config.fetch_timeout_seconds
        try:
            candidates = await asyncio.wait_for(
                self._source.fetch_candidates(hints), timeout=timeout,
            )
        except DataSourceError:
            logger.warning("Data source '%s' failed", source_id)
            raise
        except asyncio.TimeoutError as e:
            msg = f"Data source '{source_id}' timed out after {timeout}s"
            raise DataSourceError(msg, cause=e) from e
        except Exception as e:
            msg = f"Data source '{source_id}' failed: {e}"
            raise DataSourceError(msg, cause=e) from e
        return list(candidates)

    def _build_hints(self, filters: FilterSet, sort: SortSpec, page_number: int) -> QueryHints:
        low, high = filters.salary_range
        return QueryHints(
            keywords=filters.keywords,
            location=filters.location,
            remote_only=filters.remote_only,
            job_types=tuple(filters.job_type),
            salary_min=low,
            salary_max=high,
            date_posted=filters.date_posted,
            sort_field=sort.field,
            sort_order=sort.order,
            page=page_number,
            per_page=self._config.page_size,
        )

    # ------------------------------------------------------------------
    # Saved searches
    # ------------------------------------------------------------------

    def save_current_search(self, name: str = "") -> SavedSearch:
        """Snapshot the current filters and sort as a named saved search.

        A blank name becomes ``Search <date>``. result_count is taken from the
        last executed page (0 if nothing has run yet).
        """
        now = self._clock()
        search = SavedSearch(
            id=new_search_id(),
            name=name.strip() or f"Search {now:%Y-%m-%d}",
            filters=self._filters.snapshot(),
            sort=self._sort,
            created_at=now,
            result_count=self._last_page.total_results if self._last_page else 0,
        )
        self._history.add_saved(search)
        self._persist(SAVED_SEARCHES_KEY, self._history.dump_saved())
        logger.info("Saved search '%s' (%s)", search.name, search.id)
        return search

    async def load_saved_search(self, search_id: str) -> Page:
        """Replace filters and sort with a saved search and run it from page 1.

        Raises:
            NotFoundError: If the id is unknown. State is unchanged.
            DataSourceError: If the fresh execute() fails. Filters stay loaded.
        """
        search = self._history.get_saved(search_id)
        self._filters = search.filters.snapshot()
        self._sort = search.sort
        self._state_changed()
        logger.info("Loaded saved search '%s' (%s)", search.name, search.id)
        return await self.execute()

    def delete_saved_search(self, search_id: str) -> SavedSearch:
        """Delete a saved search.

        Raises:
            NotFoundError: If the id is unknown. The list is unchanged.
        """
        search = self._history.remove_saved(search_id)
        self._persist(SAVED_SEARCHES_KEY, self._history.dump_saved())
        logger.info("Deleted saved search '%s' (%s)", search.name, search.id)
        return search

    # ------------------------------------------------------------------
    # State bookkeeping
    # ------------------------------------------------------------------

    def _state_changed(self) -> None:
        self._page_number = 1
        self._dirty = True
        state = SessionState(filters=self._filters, sort=self._sort)
        self._persist(STATE_KEY, state.model_dump_json())

    def _record_recent(self, filters: FilterSet) -> None:
        self._history.add_recent(
            RecentSearch(
                keywords=filters.keywords,
                location=filters.location,
                timestamp=self._clock(),
            ),
        )
        self._persist(RECENT_SEARCHES_KEY, self._history.dump_recent())

    def _persist(self, key: str, payload: str) -> None:
        try:
            self._persistence.save(key, payload)
        except PersistenceError as e:
            logger.warning("Could not persist '%s': %s", key, e)

    def _load(self, key: str) -> str | None:
        try:
            return self._persistence.load(key)
        except PersistenceError as e:
            logger.warning("Could not load '%s', using defaults: %s", key, e)
            return None

    def _restore(self) -> None:
        """Read persisted state; missing or corrupted records leave defaults."""
        payload = self._load(STATE_KEY)
        if payload is not None:
            try:
                state = SessionState.model_validate_json(payload)
            except ValueError as e:
                logger.warning("Ignoring corrupted '%s' record: %s", STATE_KEY, e)
            else:
                self._filters = state.filters
                self._sort = state.sort

        payload = self._load(SAVED_SEARCHES_KEY)
        if payload is not None:
            try:
                self._history.restore_saved(payload)
            except ValueError as e:
                logger.warning("Ignoring corrupted '%s' record: %s", SAVED_SEARCHES_KEY, e)

        payload = self._load(RECENT_SEARCHES_KEY)
        if payload is not None:
            try:
                self._history.restore_recent(payload)
            except ValueError as e:
                logger.warning("Ignoring corrupted '%s' record: %s", RECENT_SEARCHES_KEY, e)
