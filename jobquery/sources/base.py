"""Abstract base class for candidate listing sources."""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from jobquery.core.schemas import DatePosted, JobType, Listing, SortField, SortOrder


class QueryHints(BaseModel):
    """Pre-filtering hints passed to a data source.

    A source may use these to narrow what it returns, but the engine re-applies
    every filter itself, so ignoring them is always correct.
    """

    model_config = ConfigDict(frozen=True)

    keywords: str = ""
    location: str = ""
    remote_only: bool = False
    job_types: tuple[JobType, ...] = ()
    salary_min: int = 0
    salary_max: int = 0
    date_posted: DatePosted = "any"
    sort_field: SortField = "relevance"
    sort_order: SortOrder = "desc"
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1)


class DataSource(ABC):
    """Base class that every listing source must implement."""

    @property
    @abstractmethod
    def source_id(self) -> str:
        """Unique identifier for this source (e.g. 'file')."""

    @abstractmethod
    async def fetch_candidates(self, hints: QueryHints) -> list[Listing]:
        """Return candidate listings in source order.

        Raises:
            DataSourceError: If the listings could not be retrieved. An empty
                list means zero candidates, never a failure.
        """
