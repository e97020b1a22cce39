"""In-memory record store used for local runs and tests."""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from lifelog.repositories.base import (
    AnyOf,
    Condition,
    Filter,
    RecordStore,
    SelectResult,
    SortKey,
    StoreError,
    UniqueViolation,
)

_DEFAULT_UNIQUE_COLUMNS: dict[str, tuple[str, ...]] = {
    "users": ("user_id", "username", "email"),
}


def like_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a SQL LIKE pattern (``%``, ``_``, backslash escapes) to a regex."""
    parts: list[str] = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def matches_condition(row: Mapping[str, Any], condition: Condition) -> bool:
    actual = row.get(condition.column)
    expected = condition.value
    op = condition.op

    if op == "is_null":
        return actual is None
    if op == "not_null":
        return actual is not None
    # Comparisons against NULL are never true, as in SQL.
    if actual is None:
        return False

    if op == "eq":
        return actual == expected
    if op == "neq":
        return actual != expected
    if op == "in":
        return actual in _as_list(expected)
    if op == "ilike":
        return like_to_regex(str(expected)).fullmatch(str(actual)) is not None
    if op == "contains":
        present = _as_list(actual)
        return all(item in present for item in _as_list(expected))
    if op == "overlaps":
        present = _as_list(actual)
        return any(item in present for item in _as_list(expected))

    try:
        if op == "gt":
            return actual > expected
        if op == "gte":
            return actual >= expected
        if op == "lt":
            return actual < expected
        if op == "lte":
            return actual <= expected
    except TypeError as exc:
        raise StoreError(f"Cannot compare column {condition.column!r} with {expected!r}") from exc
    raise StoreError(f"Unsupported filter operator: {op}")


def matches_filters(row: Mapping[str, Any], filters: Sequence[Filter]) -> bool:
    for item in filters:
        if isinstance(item, AnyOf):
            if not any(matches_condition(row, condition) for condition in item.conditions):
                return False
        elif not matches_condition(row, item):
            return False
    return True


def sort_rows(rows: list[dict[str, Any]], order_by: Sequence[SortKey]) -> list[dict[str, Any]]:
    ordered = list(rows)
    # Stable sorts applied from the last key to the first; NULLs always last.
    for key in reversed(order_by):
        column = key.column
        if key.descending:
            ordered.sort(key=lambda row: (row.get(column) is not None, row.get(column)), reverse=True)
        else:
            ordered.sort(key=lambda row: (row.get(column) is None, row.get(column)))
    return ordered


@dataclass(slots=True)
class InMemoryStore(RecordStore):
    """Simple, deterministic persistence layer for local runs and tests."""

    tables: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    unique_columns: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(_DEFAULT_UNIQUE_COLUMNS)
    )
    write_count: int = 0
    failure_message: str | None = None

    def _table(self, table: str) -> list[dict[str, Any]]:
        if self.failure_message is not None:
            raise StoreError(self.failure_message)
        return self.tables.setdefault(table, [])

    def _check_unique(self, table: str, candidate: Mapping[str, Any], *, ignore: list[int]) -> None:
        rows = self.tables.get(table, [])
        for column in self.unique_columns.get(table, ()):
            value = candidate.get(column)
            if value is None:
                continue
            for row in rows:
                if id(row) in ignore:
                    continue
                if row.get(column) == value:
                    raise UniqueViolation(f"Duplicate value for {table}.{column}", column=column)

    async def select(
        self,
        table: str,
        *,
        filters: Sequence[Filter] = (),
        columns: Sequence[str] | None = None,
        order_by: Sequence[SortKey] = (),
        offset: int | None = None,
        limit: int | None = None,
        with_count: bool = False,
    ) -> SelectResult:
        matched = [row for row in self._table(table) if matches_filters(row, filters)]
        total = len(matched)
        matched = sort_rows(matched, order_by)

        start = offset or 0
        end = start + limit if limit is not None else None
        page = matched[start:end]

        if columns is not None:
            rows = [{column: copy.deepcopy(row.get(column)) for column in columns} for row in page]
        else:
            rows = [copy.deepcopy(row) for row in page]
        return SelectResult(rows=rows, count=total if with_count else None)

    async def insert(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        rows = self._table(table)
        row = copy.deepcopy(dict(values))
        self._check_unique(table, row, ignore=[])
        rows.append(row)
        self.write_count += 1
        return copy.deepcopy(row)

    async def update(
        self,
        table: str,
        *,
        filters: Sequence[Filter],
        values: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        targets = [row for row in self._table(table) if matches_filters(row, filters)]
        for row in targets:
            self._check_unique(table, {**row, **values}, ignore=[id(target) for target in targets])

        updated: list[dict[str, Any]] = []
        for row in targets:
            row.update(copy.deepcopy(dict(values)))
            updated.append(copy.deepcopy(row))
        if updated:
            self.write_count += 1
        return updated

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        rows = self._table(table)
        kept = [row for row in rows if not matches_filters(row, filters)]
        removed = len(rows) - len(kept)
        rows[:] = kept
        if removed:
            self.write_count += 1
        return removed


__all__ = ["InMemoryStore", "like_to_regex", "matches_condition", "matches_filters", "sort_rows"]
