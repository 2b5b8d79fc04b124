"""FilterSet: the complete, current set of search criteria.

Every field can be written independently and has a "cleared" default.
Set-valued fields are stored as insertion-ordered lists without duplicates;
serialize_key() sorts them so member order never changes a cache key.
"""

import json
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from jobquery.core.errors import ValidationError
from jobquery.core.schemas import DatePosted, ExperienceLevel, JobType
from jobquery.search.formatting import format_salary

MAX_SALARY = 300_000
DEFAULT_RADIUS = 50

SET_FIELDS = (
    "job_type",
    "experience_level",
    "company_size",
    "industry",
    "benefits",
    "skills",
)

# camelCase names sent by browser clients.
FIELD_ALIASES = {
    "jobType": "job_type",
    "experienceLevel": "experience_level",
    "salaryRange": "salary_range",
    "datePosted": "date_posted",
    "remoteOnly": "remote_only",
    "companySize": "company_size",
}

_DATE_POSTED_LABELS = {
    "day": "Past 24 hours",
    "week": "Past week",
    "month": "Past month",
}


class ActiveFilter(NamedTuple):
    """One non-default filter, as shown in a filter-tag strip."""

    key: str
    label: str
    value: str


def _clamp_salary(value: int) -> int:
    return max(0, min(MAX_SALARY, value))


class FilterSet(BaseModel):
    """Mutable search criteria owned by a single search session."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    keywords: str = ""
    location: str = ""
    remote_only: bool = False
    radius: int = Field(default=DEFAULT_RADIUS, ge=0)
    job_type: list[JobType] = Field(default_factory=list)
    experience_level: list[ExperienceLevel] = Field(default_factory=list)
    salary_range: tuple[int, int] = (0, MAX_SALARY)
    date_posted: DatePosted = "any"
    company_size: list[str] = Field(default_factory=list)
    industry: list[str] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)

    @field_validator("keywords", "location", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator(*SET_FIELDS)
    @classmethod
    def unique_members(cls, v: list[str]) -> list[str]:
        result: list[str] = []
        for member in v:
            member = member.strip()
            if member and member not in result:
                result.append(member)
        return result

    @field_validator("salary_range")
    @classmethod
    def clamp_salary_range(cls, v: tuple[int, int]) -> tuple[int, int]:
        low, high = _clamp_salary(v[0]), _clamp_salary(v[1])
        if low > high:
            msg = f"salary minimum {low} exceeds maximum {high}"
            raise ValueError(msg)
        return (low, high)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_field(self, field: str, value: Any) -> None:
        """Replace the value of one filter field.

        Raises:
            KeyError: If the field does not exist.
            ValidationError: If the value is malformed. The FilterSet is unchanged.
        """
        name = resolve_field(field)
        try:
            setattr(self, name, value)
        except PydanticValidationError as e:
            detail = e.errors()[0]["msg"] if e.errors() else str(e)
            msg = f"Invalid value for filter '{field}': {detail}"
            raise ValidationError(msg) from e

    def toggle_member(self, field: str, value: str) -> bool:
        """Add value to a set-valued field, or remove it if already present.

        Returns True if the value is a member after the call.
        """
        name = resolve_field(field)
        if name not in SET_FIELDS:
            msg = f"Filter '{field}' is not set-valued"
            raise KeyError(msg)
        if isinstance(value, str):
            value = value.strip()
        if not value:
            msg = f"Cannot toggle an empty value in filter '{field}'"
            raise ValidationError(msg)

        members = list(getattr(self, name))
        if value in members:
            members.remove(value)
            present = False
        else:
            members.append(value)
            present = True
        self.set_field(name, members)
        return present

    def remove(self, field: str, value: str | None = None) -> None:
        """Remove one filter.

        Set-valued fields drop ``value`` (or are emptied when value is None);
        every other field returns to its default.
        """
        name = resolve_field(field)
        if name in SET_FIELDS and value is not None:
            self.set_field(name, [m for m in getattr(self, name) if m != value])
        else:
            setattr(self, name, _default(name))

    def clear(self) -> None:
        """Reset every field to its default."""
        for name in type(self).model_fields:
            setattr(self, name, _default(name))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def active_filters(self) -> list[ActiveFilter]:
        """Return the non-default filters in display order."""
        active: list[ActiveFilter] = []

        if self.keywords:
            active.append(ActiveFilter("keywords", "Keywords", self.keywords))
        if self.location:
            active.append(ActiveFilter("location", "Location", self.location))
        if self.job_type:
            active.append(ActiveFilter("job_type", "Job Type", ", ".join(self.job_type)))
        if self.experience_level:
            active.append(
                ActiveFilter("experience_level", "Experience", ", ".join(self.experience_level)),
            )

        low, high = self.salary_range
        if low > 0 or high < MAX_SALARY:
            active.append(
                ActiveFilter("salary_range", "Salary", f"{format_salary(low)} - {format_salary(high)}"),
            )

        if self.date_posted != "any":
            active.append(
                ActiveFilter("date_posted", "Date Posted", _DATE_POSTED_LABELS[self.date_posted]),
            )
        if self.remote_only:
            active.append(ActiveFilter("remote_only", "Remote", "Remote Only"))

        for name, label in (
            ("company_size", "Company Size"),
            ("industry", "Industry"),
            ("benefits", "Benefits"),
            ("skills", "Skills"),
        ):
            members = getattr(self, name)
            if members:
                active.append(ActiveFilter(name, label, ", ".join(members)))

        return active

    def serialize_key(self) -> str:
        """Stable, member-order-independent serialization for cache keys."""
        data = self.model_dump()
        for name in SET_FIELDS:
            data[name] = sorted(data[name])
        return json.dumps(data, sort_keys=True, separators=(",", ":"))

    def snapshot(self) -> "FilterSet":
        """Return an independent copy of the current criteria."""
        return self.model_copy(deep=True)


def resolve_field(field: str) -> str:
    """Map a (possibly camelCase) field name to the FilterSet attribute.

    Raises:
        KeyError: If no such filter exists. Unknown fields are programming errors.
    """
    name = FIELD_ALIASES.get(field, field)
    if name not in FilterSet.model_fields:
        msg = f"Unknown filter field '{field}'"
        raise KeyError(msg)
    return name


def _default(name: str) -> Any:
    return FilterSet.model_fields[name].get_default(call_default_factory=True)
