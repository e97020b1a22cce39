"""Backing store interface shared by the memory and postgres implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import UUID

Operator = Literal[
    "eq",
    "neq",
    "gt",
    "gte",
    "lt",
    "lte",
    "in",
    "ilike",
    "contains",
    "overlaps",
    "is_null",
    "not_null",
]

OPERATORS: frozenset[str] = frozenset(
    {"eq", "neq", "gt", "gte", "lt", "lte", "in", "ilike", "contains", "overlaps", "is_null", "not_null"}
)


def is_row_id(value: str) -> bool:
    """Row ids are UUIDs; anything else can never match a stored row."""
    try:
        UUID(value)
    except (TypeError, ValueError, AttributeError):
        return False
    return True


class StoreError(RuntimeError):
    """Raised for any failure inside the backing store."""


class UniqueViolation(StoreError):
    """A write collided with a unique column."""

    def __init__(self, message: str, *, column: str | None = None) -> None:
        self.column = column
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class Condition:
    """``column <op> value``; ``contains``/``overlaps`` apply to array columns."""

    column: str
    op: Operator
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(frozen=True, slots=True)
class AnyOf:
    """Logical OR of several conditions."""

    conditions: tuple[Condition, ...]


Filter = Condition | AnyOf


@dataclass(frozen=True, slots=True)
class SortKey:
    column: str
    descending: bool = True


@dataclass(slots=True)
class SelectResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    count: int | None = None


class RecordStore(ABC):
    """Table-per-resource relational interface.

    Every filter list is conjunctive. ``select`` returns the exact number of
    matching rows in ``count`` when asked, independent of offset/limit.
    """

    @abstractmethod
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
        """Return matching rows (and optionally the total match count)."""

    @abstractmethod
    async def insert(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""

    @abstractmethod
    async def update(
        self,
        table: str,
        *,
        filters: Sequence[Filter],
        values: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        """Update matching rows and return them after the change."""

    @abstractmethod
    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        """Delete matching rows and return how many were removed."""

    async def connect(self) -> None:
        """Open any underlying connections. No-op by default."""

    async def close(self) -> None:
        """Release any underlying connections. No-op by default."""


__all__ = [
    "AnyOf",
    "Condition",
    "Filter",
    "OPERATORS",
    "Operator",
    "RecordStore",
    "SelectResult",
    "SortKey",
    "StoreError",
    "UniqueViolation",
    "is_row_id",
]
