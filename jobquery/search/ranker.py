"""Relevance scoring and sort ordering for listings.

Relevance: +10 per keyword token found, +20 for a location match,
+15 for a remote listing when remote_only is set. No other terms.

Sorting is stable: listings that compare equal keep their input order,
which keeps pagination reproducible.
"""

from jobquery.core.schemas import Listing, SortSpec
from jobquery.search.filters import FilterSet
from jobquery.search.matcher import keyword_tokens, searchable_text

KEYWORD_BONUS = 10
LOCATION_BONUS = 20
REMOTE_BONUS = 15


def relevance_score(listing: Listing, filters: FilterSet) -> int:
    """Score a single listing against the current criteria."""
    score = 0

    tokens = keyword_tokens(filters.keywords)
    if tokens:
        text = searchable_text(listing)
        score += KEYWORD_BONUS * sum(1 for token in tokens if token in text)

    if filters.location and filters.location.lower() in listing.location.lower():
        score += LOCATION_BONUS

    if filters.remote_only and listing.remote:
        score += REMOTE_BONUS

    return score


def sort_value(listing: Listing, sort: SortSpec, filters: FilterSet) -> float:
    """The quantity a listing is ordered by for the given sort field."""
    if sort.field == "date":
        return listing.posted_at.timestamp()
    if sort.field == "salary":
        return float(listing.salary_max)
    return float(relevance_score(listing, filters))


def compare(a: Listing, b: Listing, sort: SortSpec, filters: FilterSet) -> int:
    """Three-way comparison: negative if ``a`` ranks before ``b``.

    The sort order is a multiplier: +1 for desc, -1 for asc. relevance with
    asc is honoured like any other combination.
    """
    direction = 1 if sort.order == "desc" else -1
    diff = sort_value(b, sort, filters) - sort_value(a, sort, filters)
    if diff == 0:
        return 0
    return direction if diff > 0 else -direction


def sort_listings(
    listings: list[Listing],
    sort: SortSpec,
    filters: FilterSet,
) -> list[Listing]:
    """Return listings ordered per ``sort``; ties keep input order."""
    # Keys computed once per listing; sorted() with reverse keeps ties stable.
    keyed = [(sort_value(listing, sort, filters), listing) for listing in listings]
    keyed = sorted(keyed, key=lambda pair: pair[0], reverse=sort.order == "desc")
    return [listing for _, listing in keyed]
