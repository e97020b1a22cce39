"""Turn normalized query parameters into owner-scoped store queries.

Every list, export and statistics request goes through `build_list_query`.
The owner predicate is always the first filter; user-supplied filters follow
in the order the resource declares them, and all filters are conjunctive.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

from lifelog.core.query_params import all_values, first_value
from lifelog.errors import ValidationError
from lifelog.repositories.base import AnyOf, Condition, Filter, SortKey

QueryParams = Mapping[str, str | list[str]]

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
OWNER_COLUMN = "user_id"

_END_OF_DAY = time(23, 59, 59, 999_000)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_date_only(raw: str) -> bool:
    return len(raw) == 10 and raw[4] == "-" and raw[7] == "-"


def parse_date_bound(raw: str, *, end_of_day: bool = False, param: str = "date") -> datetime:
    """Parse a ``YYYY-MM-DD`` or ISO-8601 bound into an aware UTC datetime.

    A calendar date opens at 00:00 UTC, or closes at 23:59:59.999 UTC when
    ``end_of_day`` is set. Full timestamps are used as given.
    """
    text = raw.strip()
    try:
        if _is_date_only(text):
            day = date.fromisoformat(text)
            return datetime.combine(day, _END_OF_DAY if end_of_day else time.min, tzinfo=UTC)
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid date for '{param}'", details=raw) from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def parse_number(raw: str, *, param: str, integer: bool = False) -> float | int:
    text = raw.strip()
    try:
        value = int(text) if integer else float(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid number for '{param}'", details=raw) from exc
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"Invalid number for '{param}'", details=raw)
    return value


def split_list(params: QueryParams, param: str) -> list[str]:
    """Values from repeated keys and/or comma-separated lists, blanks dropped."""
    values: list[str] = []
    for raw in all_values(params.get(param)):
        values.extend(part.strip() for part in raw.split(","))
    return [value for value in values if value]


class FilterSpec(ABC):
    """Maps one query parameter to zero or more store filters."""

    param: str

    def raw(self, params: QueryParams) -> str | None:
        value = first_value(params.get(self.param))
        if value is None:
            return None
        value = value.strip()
        return value or None

    @abstractmethod
    def filters(self, params: QueryParams) -> list[Filter]:
        """Return the filters for this parameter; empty when it is absent."""


@dataclass(frozen=True)
class Exact(FilterSpec):
    """Equality; repeated keys widen to a set-membership test."""

    param: str
    column: str

    def filters(self, params: QueryParams) -> list[Filter]:
        values = [value.strip() for value in all_values(params.get(self.param)) if value.strip()]
        if not values:
            return []
        if len(values) == 1:
            return [Condition(self.column, "eq", values[0])]
        return [Condition(self.column, "in", values)]


@dataclass(frozen=True)
class Contains(FilterSpec):
    """Case-insensitive substring match on one column."""

    param: str
    column: str

    def filters(self, params: QueryParams) -> list[Filter]:
        value = self.raw(params)
        if value is None:
            return []
        return [Condition(self.column, "ilike", f"%{escape_like(value)}%")]


@dataclass(frozen=True)
class Search(FilterSpec):
    """Case-insensitive substring match on any of several columns."""

    param: str
    columns: tuple[str, ...]

    def filters(self, params: QueryParams) -> list[Filter]:
        value = self.raw(params)
        if value is None:
            return []
        pattern = f"%{escape_like(value)}%"
        return [AnyOf(tuple(Condition(column, "ilike", pattern) for column in self.columns))]


@dataclass(frozen=True)
class DateFrom(FilterSpec):
    param: str
    column: str

    def filters(self, params: QueryParams) -> list[Filter]:
        value = self.raw(params)
        if value is None:
            return []
        return [Condition(self.column, "gte", parse_date_bound(value, param=self.param))]


@dataclass(frozen=True)
class DateTo(FilterSpec):
    param: str
    column: str

    def filters(self, params: QueryParams) -> list[Filter]:
        value = self.raw(params)
        if value is None:
            return []
        return [Condition(self.column, "lte", parse_date_bound(value, end_of_day=True, param=self.param))]


@dataclass(frozen=True)
class NumberMin(FilterSpec):
    param: str
    column: str
    integer: bool = False

    def filters(self, params: QueryParams) -> list[Filter]:
        value = self.raw(params)
        if value is None:
            return []
        return [Condition(self.column, "gte", parse_number(value, param=self.param, integer=self.integer))]


@dataclass(frozen=True)
class NumberMax(FilterSpec):
    param: str
    column: str
    integer: bool = False

    def filters(self, params: QueryParams) -> list[Filter]:
        value = self.raw(params)
        if value is None:
            return []
        return [Condition(self.column, "lte", parse_number(value, param=self.param, integer=self.integer))]


@dataclass(frozen=True)
class ArrayContains(FilterSpec):
    """Array column holds every requested value."""

    param: str
    column: str

    def filters(self, params: QueryParams) -> list[Filter]:
        values = split_list(params, self.param)
        if not values:
            return []
        return [Condition(self.column, "contains", values)]


@dataclass(frozen=True)
class ArrayOverlaps(FilterSpec):
    """Array column holds at least one requested value."""

    param: str
    column: str

    def filters(self, params: QueryParams) -> list[Filter]:
        values = split_list(params, self.param)
        if not values:
            return []
        return [Condition(self.column, "overlaps", values)]


@dataclass(frozen=True)
class Flag(FilterSpec):
    """``param=true`` restricts to rows where the boolean column is set."""

    param: str
    column: str

    def filters(self, params: QueryParams) -> list[Filter]:
        value = self.raw(params)
        if value is None or value.lower() != "true":
            return []
        return [Condition(self.column, "eq", True)]


@dataclass(frozen=True)
class Year(FilterSpec):
    """Calendar-year window ``[Jan 1, Jan 1 of the next year)`` in UTC."""

    param: str
    column: str

    def filters(self, params: QueryParams) -> list[Filter]:
        value = self.raw(params)
        if value is None:
            return []
        year = int(parse_number(value, param=self.param, integer=True))
        if not 1 <= year < 9999:
            raise ValidationError(f"Invalid year for '{self.param}'", details=value)
        start = datetime(year, 1, 1, tzinfo=UTC)
        end = datetime(year + 1, 1, 1, tzinfo=UTC)
        return [Condition(self.column, "gte", start), Condition(self.column, "lt", end)]


def _positive_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value >= 1 else default


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_params(cls, params: QueryParams) -> Pagination:
        """Absent, non-numeric or non-positive values fall back to the defaults."""
        return cls(
            page=_positive_int(first_value(params.get("page")), DEFAULT_PAGE),
            limit=_positive_int(first_value(params.get("limit")), DEFAULT_LIMIT),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total_count: int) -> int:
        return max(1, math.ceil(total_count / self.limit))


@dataclass(frozen=True, slots=True)
class ListQuery:
    filters: tuple[Filter, ...]
    order_by: tuple[SortKey, ...]
    pagination: Pagination


def owner_scoped_filters(owner_id: str, params: QueryParams, specs: Sequence[FilterSpec]) -> tuple[Filter, ...]:
    filters: list[Filter] = [Condition(OWNER_COLUMN, "eq", owner_id)]
    for spec in specs:
        filters.extend(spec.filters(params))
    return tuple(filters)


def default_sort(date_column: str) -> tuple[SortKey, ...]:
    """Natural date descending, ties broken by creation time descending."""
    return (SortKey(date_column, descending=True), SortKey("created_at", descending=True))


def build_list_query(
    owner_id: str,
    params: QueryParams,
    specs: Sequence[FilterSpec],
    sort: Sequence[SortKey],
) -> ListQuery:
    return ListQuery(
        filters=owner_scoped_filters(owner_id, params, specs),
        order_by=tuple(sort),
        pagination=Pagination.from_params(params),
    )


__all__ = [
    "ArrayContains",
    "ArrayOverlaps",
    "Contains",
    "DateFrom",
    "DateTo",
    "Exact",
    "FilterSpec",
    "Flag",
    "ListQuery",
    "NumberMax",
    "NumberMin",
    "Pagination",
    "QueryParams",
    "Search",
    "Year",
    "build_list_query",
    "default_sort",
    "escape_like",
    "owner_scoped_filters",
    "parse_date_bound",
    "split_list",
]
