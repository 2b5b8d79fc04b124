"""Core data models: listings, sort preference and result pages."""

import math
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

JobType = Literal["full_time", "part_time", "contract", "internship"]
ExperienceLevel = Literal["entry", "mid", "senior", "executive"]
DatePosted = Literal["any", "day", "week", "month"]
SortField = Literal["relevance", "date", "salary"]
SortOrder = Literal["asc", "desc"]


class Listing(BaseModel):
    """A job listing supplied by a data source. Read-only to the engine."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    company: str = ""
    location: str = ""
    salary_min: int = Field(default=0, ge=0)
    salary_max: int = Field(default=0, ge=0)
    type: JobType = "full_time"
    experience_level: ExperienceLevel = "mid"
    posted_at: datetime
    remote: bool = False
    skills: tuple[str, ...] = ()
    description: str = ""

    @field_validator("type", "experience_level", mode="before")
    @classmethod
    def normalize_enum_text(cls, v: object) -> object:
        # Upstream feeds use "full-time"; the engine uses "full_time".
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_").replace(" ", "_")
        return v


class SortSpec(BaseModel):
    """Sort preference for a query. Defaults to most relevant first."""

    model_config = ConfigDict(frozen=True)

    field: SortField = "relevance"
    order: SortOrder = "desc"


class Page(BaseModel):
    """One ranked slice of results plus pagination metadata.

    Frozen: a cached Page is handed back to callers as-is.
    """

    model_config = ConfigDict(frozen=True)

    items: tuple[Listing, ...] = ()
    page_number: int = Field(default=1, ge=1)
    page_size: int = Field(ge=1)
    total_results: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1


def paginate(listings: list[Listing], page_number: int, page_size: int) -> Page:
    """Slice ranked listings into a Page.

    page_number is clamped into [1, max(total_pages, 1)] before slicing.
    """
    total_results = len(listings)
    total_pages = math.ceil(total_results / page_size)
    page_number = max(1, min(page_number, max(total_pages, 1)))
    start = (page_number - 1) * page_size
    return Page(
        items=tuple(listings[start:start + page_size]),
        page_number=page_number,
        page_size=page_size,
        total_results=total_results,
        total_pages=total_pages,
    )
