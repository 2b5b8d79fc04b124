"""Filter chain for listing matching.

A listing is kept only if every filter accepts it:
  1. KeywordsFilter        - every token in title/company/description
  2. LocationFilter        - location substring; remote listings bypass it
  3. JobTypeFilter         - listing.type in the requested set
  4. SalaryOverlapFilter   - listing salary range overlaps the requested one
  5. ExperienceLevelFilter - listing.experience_level in the requested set
  6. RemoteOnlyFilter      - listing.remote when remote_only is set
  7. SkillsFilter          - every requested skill present (case-insensitive)

Filters are independent of ranking and of each other; an empty criterion
passes everything through.
"""

import logging
from abc import ABC, abstractmethod

from jobquery.core.schemas import Listing
from jobquery.search.filters import FilterSet

logger = logging.getLogger(__name__)


def keyword_tokens(keywords: str) -> list[str]:
    """Split free text into lowercase whitespace-separated tokens."""
    return keywords.lower().split()


def searchable_text(listing: Listing) -> str:
    """Lowercased text that keyword tokens are matched against."""
    return f"{listing.title} {listing.company} {listing.description}".lower()


class ListingFilter(ABC):
    """A pass/fail predicate applied to a batch of listings."""

    @abstractmethod
    def accepts(self, listing: Listing) -> bool:
        """Return True if the listing satisfies this criterion."""

    def __call__(self, listings: list[Listing]) -> list[Listing]:
        result = [listing for listing in listings if self.accepts(listing)]
        removed = len(listings) - len(result)
        if removed:
            logger.debug("%s: removed %d listings", type(self).__name__, removed)
        return result


class KeywordsFilter(ListingFilter):
    """Keep listings containing every keyword token (AND, case-insensitive)."""

    def __init__(self, keywords: str) -> None:
        self._tokens = keyword_tokens(keywords)

    def accepts(self, listing: Listing) -> bool:
        if not self._tokens:
            return True
        text = searchable_text(listing)
        return all(token in text for token in self._tokens)


class LocationFilter(ListingFilter):
    """Keep listings whose location contains the requested text.

    Remote listings pass regardless of their location text.
    """

    def __init__(self, location: str) -> None:
        self._location = location.lower().strip()

    def accepts(self, listing: Listing) -> bool:
        if not self._location or listing.remote:
            return True
        return self._location in listing.location.lower()


class JobTypeFilter(ListingFilter):
    def __init__(self, job_types: list[str]) -> None:
        self._job_types = frozenset(job_types)

    def accepts(self, listing: Listing) -> bool:
        return not self._job_types or listing.type in self._job_types


class SalaryOverlapFilter(ListingFilter):
    """Keep listings whose salary range overlaps [minimum, maximum]."""

    def __init__(self, minimum: int, maximum: int) -> None:
        self._minimum = minimum
        self._maximum = maximum

    def accepts(self, listing: Listing) -> bool:
        return listing.salary_max >= self._minimum and listing.salary_min <= self._maximum


class ExperienceLevelFilter(ListingFilter):
    def __init__(self, levels: list[str]) -> None:
        self._levels = frozenset(levels)

    def accepts(self, listing: Listing) -> bool:
        return not self._levels or listing.experience_level in self._levels


class RemoteOnlyFilter(ListingFilter):
    def __init__(self, remote_only: bool) -> None:
        self._remote_only = remote_only

    def accepts(self, listing: Listing) -> bool:
        return not self._remote_only or listing.remote


class SkillsFilter(ListingFilter):
    """Keep listings that list every requested skill (case-insensitive)."""

    def __init__(self, skills: list[str]) -> None:
        self._skills = [s.lower() for s in skills]

    def accepts(self, listing: Listing) -> bool:
        if not self._skills:
            return True
        listing_skills = {s.lower() for s in listing.skills}
        return all(skill in listing_skills for skill in self._skills)


def build_filter_chain(filters: FilterSet) -> list[ListingFilter]:
    """Build the filter chain for a FilterSet."""
    low, high = filters.salary_range
    return [
        KeywordsFilter(filters.keywords),
        LocationFilter(filters.location),
        JobTypeFilter(filters.job_type),
        SalaryOverlapFilter(low, high),
        ExperienceLevelFilter(filters.experience_level),
        RemoteOnlyFilter(filters.remote_only),
        SkillsFilter(filters.skills),
    ]


def run_filter_chain(
    listings: list[Listing],
    chain: list[ListingFilter],
) -> list[Listing]:
    """Apply filters in order, returning the surviving listings in input order."""
    result = listings
    for f in chain:
        result = f(result)
    return result


def listing_matches(listing: Listing, filters: FilterSet) -> bool:
    """Single-listing form of the filter chain."""
    return all(f.accepts(listing) for f in build_filter_chain(filters))
