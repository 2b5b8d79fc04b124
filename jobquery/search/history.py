"""Bounded saved and recent search lists.

Both lists insert at the head and drop the oldest entry on overflow.
Saved searches are explicit and named; recent searches are recorded
implicitly on every executed query and may repeat.
"""

import logging
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from jobquery.core.errors import NotFoundError
from jobquery.core.schemas import SortSpec
from jobquery.search.filters import FilterSet

logger = logging.getLogger(__name__)

SAVED_CAPACITY = 10
RECENT_CAPACITY = 5


class SavedSearch(BaseModel):
    """A user-named snapshot of filters and sort."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    filters: FilterSet
    sort: SortSpec = Field(default_factory=SortSpec)
    created_at: datetime
    result_count: int = Field(default=0, ge=0)


class RecentSearch(BaseModel):
    """An implicitly recorded keyword/location query."""

    model_config = ConfigDict(frozen=True)

    keywords: str = ""
    location: str = ""
    timestamp: datetime


_SAVED_LIST = TypeAdapter(list[SavedSearch])
_RECENT_LIST = TypeAdapter(list[RecentSearch])


def new_search_id() -> str:
    return f"search-{uuid.uuid4().hex[:12]}"


class SearchHistory:
    """Saved and recent search lists with fixed capacities."""

    def __init__(
        self,
        saved_capacity: int = SAVED_CAPACITY,
        recent_capacity: int = RECENT_CAPACITY,
    ) -> None:
        self._saved_capacity = saved_capacity
        self._recent_capacity = recent_capacity
        self._saved: list[SavedSearch] = []
        self._recent: list[RecentSearch] = []

    @property
    def saved(self) -> list[SavedSearch]:
        """Copies of the saved searches, newest first."""
        return [search.model_copy(deep=True) for search in self._saved]

    @property
    def recent(self) -> list[RecentSearch]:
        """Recent searches, newest first."""
        return list(self._recent)

    # ------------------------------------------------------------------
    # Saved searches
    # ------------------------------------------------------------------

    def add_saved(self, search: SavedSearch) -> None:
        self._saved.insert(0, search.model_copy(deep=True))
        dropped = self._saved[self._saved_capacity:]
        del self._saved[self._saved_capacity:]
        for old in dropped:
            logger.info("Saved search list full - dropped '%s' (%s)", old.name, old.id)

    def get_saved(self, search_id: str) -> SavedSearch:
        """Return a copy of the saved search with this id.

        Raises:
            NotFoundError: If no saved search has this id.
        """
        return self._saved[self._index(search_id)].model_copy(deep=True)

    def remove_saved(self, search_id: str) -> SavedSearch:
        """Remove and return the saved search with this id.

        Raises:
            NotFoundError: If no saved search has this id. The list is unchanged.
        """
        return self._saved.pop(self._index(search_id))

    def _index(self, search_id: str) -> int:
        for i, search in enumerate(self._saved):
            if search.id == search_id:
                return i
        msg = f"Saved search not found: {search_id}"
        raise NotFoundError(msg)

    # ------------------------------------------------------------------
    # Recent searches
    # ------------------------------------------------------------------

    def add_recent(self, search: RecentSearch) -> None:
        self._recent.insert(0, search)
        del self._recent[self._recent_capacity:]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def dump_saved(self) -> str:
        return _SAVED_LIST.dump_json(self._saved).decode("utf-8")

    def dump_recent(self) -> str:
        return _RECENT_LIST.dump_json(self._recent).decode("utf-8")

    def restore_saved(self, payload: str) -> None:
        """Replace saved searches from a dump_saved() payload.

        Raises:
            ValueError: If the payload is not a valid saved-search list.
        """
        self._saved = _SAVED_LIST.validate_json(payload)[: self._saved_capacity]

    def restore_recent(self, payload: str) -> None:
        """Replace recent searches from a dump_recent() payload.

        Raises:
            ValueError: If the payload is not a valid recent-search list.
        """
        self._recent = _RECENT_LIST.validate_json(payload)[: self._recent_capacity]
