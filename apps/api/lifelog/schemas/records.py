"""Record payloads and list/statistics response schemas."""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

from lifelog.schemas.common import CamelModel, UtcDatetime


def _now() -> datetime:
    return datetime.now(UTC)


def _split(value: Any, separator: str) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(separator) if part.strip()]
    return value


class IncomePayload(CamelModel):
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    category: str = Field(min_length=1)
    subcategory: str = Field(min_length=1)
    date: UtcDatetime


class ExpensePayload(CamelModel):
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    category: str = Field(min_length=1)
    subcategory: str = Field(min_length=1)
    date: UtcDatetime


class AssetPayload(CamelModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    quantity: float = Field(default=1, ge=0)
    cost: float
    current_value: float = 0
    purchase_date: UtcDatetime = Field(default_factory=_now)
    condition: str | None = None
    depreciation_method: str | None = None
    depreciation_rate: float | None = None
    notes: str | None = None


class BookNotePayload(CamelModel):
    title: str = Field(min_length=1)
    author: str | None = None
    publish_year: int | None = Field(default=None, ge=1000, le=9999)
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    read_date: UtcDatetime = Field(default_factory=_now)
    rating: int | None = Field(default=None, ge=1, le=5)
    notes: str = Field(min_length=1)

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Any:
        return _split(value, ",")


class DiaryPayload(CamelModel):
    date: UtcDatetime
    title: str = Field(min_length=1)
    weather: str | None = None
    mood: str | None = None
    location: str | None = None
    people: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    plan_list: list[str] = Field(default_factory=list)
    event_list: list[str] = Field(default_factory=list)
    feeling: str | None = None
    summary: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    is_public: bool = False

    @field_validator("people", "tags", mode="before")
    @classmethod
    def _split_commas(cls, value: Any) -> Any:
        return _split(value, ",")

    @field_validator("plan_list", "event_list", "image_urls", mode="before")
    @classmethod
    def _split_lines(cls, value: Any) -> Any:
        return _split(value, "\n")


class StoredRecord(CamelModel):
    id: str
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class Income(IncomePayload, StoredRecord):
    pass


class Expense(ExpensePayload, StoredRecord):
    pass


class Asset(AssetPayload, StoredRecord):
    pass


class BookNote(BookNotePayload, StoredRecord):
    pass


class Diary(DiaryPayload, StoredRecord):
    pass


RecordT = TypeVar("RecordT", bound=BaseModel)


class RecordPage(CamelModel, Generic[RecordT]):
    items: list[RecordT]
    total_count: int
    current_page: int
    total_pages: int
    limit: int


class RecordEnvelope(CamelModel, Generic[RecordT]):
    message: str
    item: RecordT


class BreakdownEntry(BaseModel):
    value: str
    count: int


class GroupStatistic(CamelModel):
    key: str
    count: int
    total: float | None = None
    average: float | None = None
    breakdowns: dict[str, list[BreakdownEntry]] | None = None


class StatisticsReport(CamelModel):
    statistics: list[GroupStatistic]
    dimension: str
    distinct: dict[str, list[Any]]
    query: dict[str, str | list[str]]
