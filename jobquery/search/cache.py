"""Time-bounded result cache keyed by query content.

Staleness is checked lazily at read time: an entry older than the TTL is
ignored (not evicted) and overwritten by the next put for the same key.
Size is bounded by max_entries with least-recently-used eviction.

The cache holds no per-session state, so one instance can be shared by
many engines. All access goes through a lock.
"""

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from jobquery.core.schemas import Page, SortSpec

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 256


class CacheEntry(BaseModel):
    """A cached Page and the clock reading at which it was stored."""

    model_config = ConfigDict(frozen=True)

    key: str
    page: Page
    stored_at: float


def make_cache_key(
    filter_key: str,
    sort: SortSpec,
    page_number: int,
    page_size: int,
) -> str:
    """Hash a serialized FilterSet, sort spec, page number and page size into a cache key.

    Engines sharing a cache may use different page sizes, so the size is part
    of the key.
    """
    raw = json.dumps(
        [filter_key, sort.field, sort.order, page_number, page_size],
        separators=(",", ":"),
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ResultCache:
    """TTL + LRU memoization of result pages.

    Usage::

        cache = ResultCache(ttl_seconds=300)
        page = cache.get(key)
        if page is None:
            page = compute()
            cache.put(key, page)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            msg = f"ttl_seconds must be positive, got {ttl_seconds}"
            raise ValueError(msg)
        if max_entries is not None and max_entries < 1:
            msg = f"max_entries must be at least 1, got {max_entries}"
            raise ValueError(msg)
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> Page | None:
        """Return the cached Page for key, or None if absent or stale."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Cache miss: %s", key[:12])
                return None
            if self._clock() - entry.stored_at > self._ttl:
                logger.debug("Cache stale: %s", key[:12])
                return None
            self._entries.move_to_end(key)
            logger.debug("Cache hit: %s", key[:12])
            return entry.page

    def put(self, key: str, page: Page) -> None:
        """Store page under key, replacing any previous entry."""
        with self._lock:
            self._entries[key] = CacheEntry(key=key, page=page, stored_at=self._clock())
            self._entries.move_to_end(key)
            if self._max_entries is None:
                return
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted: %s", evicted[:12])

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
