"""Listings loaded from a JSON or YAML file."""

import asyncio
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from jobquery.core.errors import DataSourceError
from jobquery.core.schemas import Listing
from jobquery.sources.base import DataSource, QueryHints

logger = logging.getLogger(__name__)

_LISTINGS = TypeAdapter(list[Listing])


class ListingFileSource(DataSource):
    """Reads a list of listings from disk on every fetch.

    The file may be JSON or YAML (YAML is a superset of JSON), either a bare
    list or a mapping with a top-level ``listings`` key. An empty file is an
    empty catalogue; a mapping without ``listings`` is a DataSourceError.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def source_id(self) -> str:
        return "file"

    async def fetch_candidates(self, hints: QueryHints) -> list[Listing]:
        listings = await asyncio.to_thread(self._read)
        logger.debug("Loaded %d listings from %s", len(listings), self._path)
        return listings

    def _read(self) -> list[Listing]:
        try:
            raw: Any = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            msg = f"Failed to read listings from {self._path}: {e}"
            raise DataSourceError(msg, cause=e) from e

        if raw is None:
            return []
        if isinstance(raw, dict):
            if "listings" not in raw:
                msg = f"No 'listings' key in {self._path} (found: {', '.join(map(str, raw))})"
                raise DataSourceError(msg)
            raw = raw["listings"]
            if raw is None:
                return []

        try:
            return _LISTINGS.validate_python(raw)
        except PydanticValidationError as e:
            msg = f"Invalid listings in {self._path}: {e.error_count()} errors"
            raise DataSourceError(msg, cause=e) from e
