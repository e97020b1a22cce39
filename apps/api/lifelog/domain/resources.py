"""Declarations for the five owner-scoped record resources.

Each `ResourceDefinition` carries everything the generic record service and
router factory need: table and payload shape, list/export filters, CSV
columns, the statistics dimensions and the distinct-value endpoints.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from lifelog.core.csv_export import ExportField
from lifelog.core.query_params import first_value
from lifelog.domain.list_query import (
    ArrayContains,
    ArrayOverlaps,
    Contains,
    DateFrom,
    DateTo,
    Exact,
    FilterSpec,
    Flag,
    NumberMax,
    NumberMin,
    QueryParams,
    Search,
    Year,
    default_sort,
)
from lifelog.domain.statistics import (
    Breakdown,
    Dimension,
    DimensionKind,
    Measure,
    as_datetime,
    day_bucket,
    month_bucket,
    text_or_unknown,
    year_bucket,
    year_of,
)
from lifelog.errors import ValidationError
from lifelog.repositories.base import SortKey
from lifelog.schemas.records import (
    Asset,
    AssetPayload,
    BookNote,
    BookNotePayload,
    Diary,
    DiaryPayload,
    Expense,
    ExpensePayload,
    Income,
    IncomePayload,
)


@dataclass(frozen=True)
class DistinctSource:
    """A column whose distinct values feed a filter dropdown.

    ``derive`` maps a stored value before deduplication (dates to years).
    List-valued columns are flattened.
    """

    column: str
    derive: Callable[[Any], Any] | None = None


@dataclass(frozen=True)
class DistinctEndpoint:
    path: str
    source: DistinctSource
    narrow_by: tuple[FilterSpec, ...] = ()


@dataclass(frozen=True)
class StatisticsSpec:
    filters: tuple[FilterSpec, ...]
    dimension: Callable[[QueryParams], Dimension]
    measure: Measure | None = None
    breakdowns: Mapping[str, Breakdown] = field(default_factory=dict)
    distinct: Mapping[str, DistinctSource] = field(default_factory=dict)


@dataclass(frozen=True)
class ResourceDefinition:
    name: str
    label: str
    table: str
    date_column: str
    payload_model: type[BaseModel]
    record_model: type[BaseModel]
    list_filters: tuple[FilterSpec, ...]
    export_fields: tuple[ExportField, ...]
    statistics: StatisticsSpec
    distinct_endpoints: tuple[DistinctEndpoint, ...] = ()

    @property
    def sort(self) -> tuple[SortKey, ...]:
        return default_sort(self.date_column)


def _choice(params: QueryParams, param: str, options: Mapping[str, Any]) -> str | None:
    raw = (first_value(params.get(param)) or "").strip()
    if not raw:
        return None
    if raw not in options:
        allowed = ", ".join(options)
        raise ValidationError(f"Invalid value for '{param}'", details=f"expected one of: {allowed}")
    return raw


def format_day(value: Any) -> str:
    moment = as_datetime(value)
    return moment.date().isoformat() if moment else ""


def format_timestamp(value: Any) -> str:
    moment = as_datetime(value)
    return moment.strftime("%Y-%m-%d %H:%M:%S") if moment else ""


def _joined(column: str, separator: str) -> Callable[[Mapping[str, Any]], str]:
    def extract(row: Mapping[str, Any]) -> str:
        return separator.join(str(item) for item in row.get(column) or [])

    return extract


def _column(column: str) -> Callable[[Mapping[str, Any]], str]:
    def extract(row: Mapping[str, Any]) -> str:
        return text_or_unknown(row.get(column))

    return extract


def _single(column: str) -> Breakdown:
    def extract(row: Mapping[str, Any]) -> list[Any]:
        return [row.get(column)]

    return extract


def _many(column: str) -> Breakdown:
    def extract(row: Mapping[str, Any]) -> list[Any]:
        return list(row.get(column) or [])

    return extract


_AUDIT_FIELDS = (
    ExportField("Created At", lambda row: format_timestamp(row.get("created_at"))),
    ExportField("Updated At", lambda row: format_timestamp(row.get("updated_at"))),
)


# Incomes and expenses share one ledger shape.

_LEDGER_CATEGORY_TYPES: dict[str, Callable[[Mapping[str, Any]], str]] = {
    "category": _column("category"),
    "subcategory": _column("subcategory"),
    "categoryAndSubcategory": lambda row: (
        f"{text_or_unknown(row.get('category'))} - {text_or_unknown(row.get('subcategory'))}"
    ),
}

_LEDGER_PERIODS: dict[str, Callable[[Any], str]] = {
    "year": year_bucket,
    "month": month_bucket,
}


def ledger_dimension(params: QueryParams) -> Dimension:
    """``categoryType`` x ``period``; a period makes the grouping time-led."""
    category_type = _choice(params, "categoryType", _LEDGER_CATEGORY_TYPES)
    period = _choice(params, "period", _LEDGER_PERIODS)

    if period and category_type:
        bucket = _LEDGER_PERIODS[period]
        label = _LEDGER_CATEGORY_TYPES[category_type]
        return Dimension(
            name=f"{period}:{category_type}",
            key=lambda row: f"{bucket(row.get('date'))} - {label(row)}",
            kind="time",
        )
    if period:
        bucket = _LEDGER_PERIODS[period]
        return Dimension(name=period, key=lambda row: bucket(row.get("date")), kind="time")
    if category_type:
        return Dimension(name=category_type, key=_LEDGER_CATEGORY_TYPES[category_type], kind="category")
    return Dimension(name="total", key=lambda row: "total", kind="label")


def _ledger_filters() -> tuple[FilterSpec, ...]:
    return (
        DateFrom("startDate", "date"),
        DateTo("endDate", "date"),
        Exact("category", "category"),
        Exact("subcategory", "subcategory"),
        NumberMin("minAmount", "amount"),
        NumberMax("maxAmount", "amount"),
    )


def _ledger_resource(
    name: str,
    label: str,
    payload_model: type[BaseModel],
    record_model: type[BaseModel],
) -> ResourceDefinition:
    categories = DistinctSource("category")
    subcategories = DistinctSource("subcategory")
    return ResourceDefinition(
        name=name,
        label=label,
        table=name,
        date_column="date",
        payload_model=payload_model,
        record_model=record_model,
        list_filters=_ledger_filters(),
        export_fields=(
            ExportField("Description", "description"),
            ExportField("Amount", "amount"),
            ExportField("Category", "category"),
            ExportField("Subcategory", "subcategory"),
            ExportField("Date", lambda row: format_day(row.get("date"))),
            *_AUDIT_FIELDS,
        ),
        statistics=StatisticsSpec(
            filters=(*_ledger_filters(), Year("year", "date")),
            dimension=ledger_dimension,
            measure=Measure("amount", lambda row: row.get("amount")),
            distinct={
                "categories": categories,
                "subcategories": subcategories,
                "years": DistinctSource("date", derive=year_of),
            },
        ),
        distinct_endpoints=(
            DistinctEndpoint("categories", categories),
            DistinctEndpoint("subcategories", subcategories, narrow_by=(Exact("category", "category"),)),
        ),
    )


INCOMES = _ledger_resource("incomes", "Income", IncomePayload, Income)
EXPENSES = _ledger_resource("expenses", "Expense", ExpensePayload, Expense)


def _asset_value(row: Mapping[str, Any]) -> float:
    return float(row.get("current_value") or 0) * float(row.get("quantity") or 0)


ASSETS = ResourceDefinition(
    name="assets",
    label="Asset",
    table="assets",
    date_column="purchase_date",
    payload_model=AssetPayload,
    record_model=Asset,
    list_filters=(
        DateFrom("startDate", "purchase_date"),
        DateTo("endDate", "purchase_date"),
        Contains("type", "type"),
        Contains("name", "name"),
    ),
    export_fields=(
        ExportField("Name", "name"),
        ExportField("Type", "type"),
        ExportField("Quantity", "quantity"),
        ExportField("Cost", "cost"),
        ExportField("Current Value", "current_value"),
        ExportField("Purchase Date", lambda row: format_day(row.get("purchase_date"))),
        ExportField("Condition", "condition"),
        ExportField("Depreciation Method", "depreciation_method"),
        ExportField("Depreciation Rate", "depreciation_rate"),
        ExportField("Notes", "notes"),
        *_AUDIT_FIELDS,
    ),
    statistics=StatisticsSpec(
        filters=(
            DateFrom("startDate", "purchase_date"),
            DateTo("endDate", "purchase_date"),
            Exact("type", "type"),
        ),
        dimension=lambda params: Dimension(name="type", key=_column("type"), kind="category"),
        measure=Measure("current_value", _asset_value),
        distinct={"types": DistinctSource("type")},
    ),
    distinct_endpoints=(DistinctEndpoint("types", DistinctSource("type")),),
)


_BOOKNOTE_GROUPS: dict[str, tuple[Callable[[Mapping[str, Any]], str], DimensionKind]] = {
    "author": (_column("author"), "label"),
    "category": (_column("category"), "label"),
    "publishYear": (_column("publish_year"), "time"),
    "rating": (lambda row: str(row.get("rating") or 0), "label"),
    "readYear": (lambda row: year_bucket(row.get("read_date")), "time"),
    "readMonth": (lambda row: month_bucket(row.get("read_date")), "time"),
}


def booknote_dimension(params: QueryParams) -> Dimension:
    group_by = _choice(params, "groupByField", _BOOKNOTE_GROUPS) or "category"
    key, kind = _BOOKNOTE_GROUPS[group_by]
    return Dimension(name=group_by, key=key, kind=kind)


BOOKNOTES = ResourceDefinition(
    name="booknotes",
    label="Book note",
    table="booknotes",
    date_column="read_date",
    payload_model=BookNotePayload,
    record_model=BookNote,
    list_filters=(
        Search("searchTitle", ("title", "notes")),
        Contains("searchAuthor", "author"),
        Contains("searchCategory", "category"),
        NumberMin("minRating", "rating", integer=True),
        DateFrom("startDate", "read_date"),
        DateTo("endDate", "read_date"),
        ArrayContains("tags", "tags"),
    ),
    export_fields=(
        ExportField("Title", "title"),
        ExportField("Author", "author"),
        ExportField("Publish Year", "publish_year"),
        ExportField("Category", "category"),
        ExportField("Tags", _joined("tags", ", ")),
        ExportField("Read Date", lambda row: format_day(row.get("read_date"))),
        ExportField("Rating", "rating"),
        ExportField("Notes", "notes"),
        *_AUDIT_FIELDS,
    ),
    statistics=StatisticsSpec(
        filters=(DateFrom("startDate", "read_date"), DateTo("endDate", "read_date")),
        dimension=booknote_dimension,
        measure=Measure("rating", lambda row: row.get("rating")),
        distinct={
            "authors": DistinctSource("author"),
            "categories": DistinctSource("category"),
            "publishYears": DistinctSource("publish_year"),
            "tags": DistinctSource("tags"),
        },
    ),
    distinct_endpoints=(
        DistinctEndpoint("authors", DistinctSource("author")),
        DistinctEndpoint("categories", DistinctSource("category")),
        DistinctEndpoint("tags", DistinctSource("tags")),
    ),
)


_DIARY_PERIODS: dict[str, Callable[[Any], str]] = {
    "year": year_bucket,
    "month": month_bucket,
    "day": day_bucket,
}


def diary_dimension(params: QueryParams) -> Dimension:
    period = _choice(params, "period", _DIARY_PERIODS)
    if period is None:
        return Dimension(name="overall", key=lambda row: "overall", kind="label")
    bucket = _DIARY_PERIODS[period]
    return Dimension(name=period, key=lambda row: bucket(row.get("date")), kind="time")


DIARIES = ResourceDefinition(
    name="diaries",
    label="Diary entry",
    table="diaries",
    date_column="date",
    payload_model=DiaryPayload,
    record_model=Diary,
    list_filters=(
        Search("searchTitle", ("title", "summary")),
        Contains("searchWeather", "weather"),
        Contains("searchMood", "mood"),
        Contains("searchLocation", "location"),
        ArrayContains("searchPeople", "people"),
        ArrayContains("searchTags", "tags"),
        DateFrom("startDate", "date"),
        DateTo("endDate", "date"),
        Flag("publicOnly", "is_public"),
    ),
    export_fields=(
        ExportField("Date", lambda row: format_day(row.get("date"))),
        ExportField("Title", "title"),
        ExportField("Weather", "weather"),
        ExportField("Mood", "mood"),
        ExportField("Location", "location"),
        ExportField("People", _joined("people", ", ")),
        ExportField("Tags", _joined("tags", ", ")),
        ExportField("Plans", _joined("plan_list", "\n")),
        ExportField("Events", _joined("event_list", "\n")),
        ExportField("Feeling", "feeling"),
        ExportField("Summary", "summary"),
        ExportField("Image URLs", _joined("image_urls", "\n")),
        ExportField("Public", lambda row: "yes" if row.get("is_public") else "no"),
        *_AUDIT_FIELDS,
    ),
    statistics=StatisticsSpec(
        filters=(
            DateFrom("startDate", "date"),
            DateTo("endDate", "date"),
            Exact("mood", "mood"),
            Exact("weather", "weather"),
            Exact("location", "location"),
            ArrayOverlaps("tags", "tags"),
            Flag("publicOnly", "is_public"),
        ),
        dimension=diary_dimension,
        breakdowns={
            "mood": _single("mood"),
            "weather": _single("weather"),
            "location": _single("location"),
            "tags": _many("tags"),
        },
        distinct={
            "moods": DistinctSource("mood"),
            "weathers": DistinctSource("weather"),
            "locations": DistinctSource("location"),
            "tags": DistinctSource("tags"),
        },
    ),
    distinct_endpoints=(
        DistinctEndpoint("moods", DistinctSource("mood")),
        DistinctEndpoint("weathers", DistinctSource("weather")),
        DistinctEndpoint("locations", DistinctSource("location")),
        DistinctEndpoint("tags", DistinctSource("tags")),
    ),
)


RESOURCES: tuple[ResourceDefinition, ...] = (INCOMES, EXPENSES, ASSETS, BOOKNOTES, DIARIES)
