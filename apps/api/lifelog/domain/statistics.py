"""In-memory grouping for the statistics endpoints."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Literal

DimensionKind = Literal["time", "category", "label"]
RowKey = Callable[[Mapping[str, Any]], str]

UNKNOWN = "unknown"


def as_datetime(value: Any) -> datetime | None:
    """Coerce a stored date value (datetime, date or ISO string) to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def year_of(value: Any) -> int | None:
    moment = as_datetime(value)
    return moment.year if moment else None


def year_bucket(value: Any) -> str:
    moment = as_datetime(value)
    return f"{moment.year:04d}" if moment else UNKNOWN


def month_bucket(value: Any) -> str:
    moment = as_datetime(value)
    return f"{moment.year:04d}-{moment.month:02d}" if moment else UNKNOWN


def day_bucket(value: Any) -> str:
    moment = as_datetime(value)
    return moment.date().isoformat() if moment else UNKNOWN


def text_or_unknown(value: Any) -> str:
    if value is None:
        return UNKNOWN
    text = str(value).strip()
    return text or UNKNOWN


@dataclass(frozen=True, slots=True)
class Dimension:
    """What to group by: ``key`` maps a row to its group label."""

    name: str
    key: RowKey
    kind: DimensionKind = "label"


@dataclass(frozen=True, slots=True)
class Measure:
    name: str
    value: Callable[[Mapping[str, Any]], float | None]


Breakdown = Callable[[Mapping[str, Any]], Iterable[Any]]


@dataclass(slots=True)
class GroupStat:
    key: str
    count: int = 0
    total: float | None = None
    average: float | None = None
    breakdowns: dict[str, list[dict[str, Any]]] | None = None


@dataclass(slots=True)
class _Accumulator:
    count: int = 0
    total: float = 0.0
    tallies: dict[str, dict[str, int]] = field(default_factory=dict)


def _round(value: float) -> float:
    return round(value + 0.0, 2)


def _sorted_tally(tally: Mapping[str, int]) -> list[dict[str, Any]]:
    ordered = sorted(tally.items(), key=lambda item: (-item[1], item[0]))
    return [{"value": value, "count": count} for value, count in ordered]


def aggregate(
    rows: Iterable[Mapping[str, Any]],
    dimension: Dimension,
    *,
    measure: Measure | None = None,
    breakdowns: Mapping[str, Breakdown] | None = None,
) -> list[GroupStat]:
    """Group rows and compute count, total and average per group.

    ``time`` groups come back chronologically, ``category`` groups by
    descending total (key as tie-break) and ``label`` groups
    lexicographically. Missing measure values count as zero.
    """
    groups: dict[str, _Accumulator] = {}
    breakdowns = breakdowns or {}

    for row in rows:
        key = dimension.key(row)
        acc = groups.setdefault(key, _Accumulator())
        acc.count += 1
        if measure is not None:
            acc.total += float(measure.value(row) or 0)
        for name, extract in breakdowns.items():
            tally = acc.tallies.setdefault(name, {})
            for value in extract(row):
                if value is None or value == "":
                    continue
                label = str(value)
                tally[label] = tally.get(label, 0) + 1

    stats: list[GroupStat] = []
    for key, acc in groups.items():
        stat = GroupStat(key=key, count=acc.count)
        if measure is not None:
            stat.total = _round(acc.total)
            stat.average = _round(acc.total / acc.count) if acc.count else 0.0
        if breakdowns:
            stat.breakdowns = {name: _sorted_tally(acc.tallies.get(name, {})) for name in breakdowns}
        stats.append(stat)

    if dimension.kind == "category":
        stats.sort(key=lambda stat: (-(stat.total or 0.0), stat.key))
    else:
        stats.sort(key=lambda stat: stat.key)
    return stats


__all__ = [
    "Breakdown",
    "Dimension",
    "DimensionKind",
    "GroupStat",
    "Measure",
    "UNKNOWN",
    "aggregate",
    "as_datetime",
    "day_bucket",
    "month_bucket",
    "text_or_unknown",
    "year_bucket",
    "year_of",
]
