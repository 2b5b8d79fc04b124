"""Listing source registry with lazy loading.

Usage:
    from jobquery.sources import get_source

    source = get_source("file", path="data/listings.json")
    listings = await source.fetch_candidates(QueryHints())
"""

from __future__ import annotations

import importlib
from typing import Any

from jobquery.sources.base import DataSource, QueryHints

__all__ = ["DataSource", "QueryHints", "available_sources", "get_source"]

# Lazy registry: maps source kind → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "file": ("jobquery.sources.listing_file", "ListingFileSource"),
    "sample": ("jobquery.sources.sample", "SampleSource"),
}


def get_source(kind: str, **options: Any) -> DataSource:
    """Instantiate and return a listing source by kind.

    Args:
        kind: Source identifier (file, sample).
        **options: Keyword arguments for the source constructor.

    Raises:
        ValueError: If the kind is unknown.
    """
    if kind not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown listing source '{kind}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[kind]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls(**options)  # type: ignore[no-any-return]


def available_sources() -> list[str]:
    """Return sorted list of registered source kinds."""
    return sorted(_REGISTRY)
