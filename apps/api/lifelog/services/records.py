"""Generic owner-scoped record service shared by every resource."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import asdict
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

from lifelog.core.csv_export import to_csv
from lifelog.domain.list_query import (
    FilterSpec,
    QueryParams,
    build_list_query,
    owner_scoped_filters,
)
from lifelog.domain.resources import DistinctSource, ResourceDefinition
from lifelog.domain.statistics import GroupStat, aggregate
from lifelog.errors import DependencyError, NotFoundError
from lifelog.repositories.base import Condition, Filter, RecordStore, StoreError, is_row_id

logger = logging.getLogger(__name__)


def _public(row: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in row.items() if key != "user_id"}


def collect_distinct(rows: Sequence[Mapping[str, Any]], source: DistinctSource) -> list[Any]:
    """Deduplicate a column's values: nulls and blanks dropped, lists flattened, ascending."""
    seen: set[Any] = set()
    for row in rows:
        raw = row.get(source.column)
        values = raw if isinstance(raw, (list, tuple)) else [raw]
        for value in values:
            if source.derive is not None:
                value = source.derive(value)
            if value is None or value == "":
                continue
            seen.add(value)
    return sorted(seen)


class RecordService:
    """CRUD, list, export, distinct and statistics for one resource.

    Single-record reads and writes put ``id`` and ``user_id`` in the same
    predicate, so a foreign record and a missing one both surface as 404.
    """

    def __init__(self, store: RecordStore, resource: ResourceDefinition) -> None:
        self._store = store
        self._resource = resource

    def _dependency_error(self, action: str, exc: StoreError) -> DependencyError:
        logger.exception(
            "records.store_failed resource=%s action=%s error_type=%s",
            self._resource.name,
            action,
            type(exc).__name__,
        )
        return DependencyError(f"Could not {action} {self._resource.name}")

    def _not_found(self) -> NotFoundError:
        return NotFoundError(f"{self._resource.label} not found")

    def _record_filters(self, owner_id: str, record_id: str) -> list[Filter]:
        if not is_row_id(record_id):
            raise self._not_found()
        return [Condition("id", "eq", record_id), Condition("user_id", "eq", owner_id)]

    async def list_records(self, *, owner_id: str, params: QueryParams) -> dict[str, Any]:
        query = build_list_query(owner_id, params, self._resource.list_filters, self._resource.sort)
        try:
            result = await self._store.select(
                self._resource.table,
                filters=query.filters,
                order_by=query.order_by,
                offset=query.pagination.offset,
                limit=query.pagination.limit,
                with_count=True,
            )
        except StoreError as exc:
            raise self._dependency_error("list", exc) from exc

        total_count = result.count or 0
        return {
            "items": [_public(row) for row in result.rows],
            "total_count": total_count,
            "current_page": query.pagination.page,
            "total_pages": query.pagination.total_pages(total_count),
            "limit": query.pagination.limit,
        }

    async def get_record(self, *, owner_id: str, record_id: str) -> dict[str, Any]:
        try:
            result = await self._store.select(
                self._resource.table,
                filters=self._record_filters(owner_id, record_id),
                limit=1,
            )
        except StoreError as exc:
            raise self._dependency_error("fetch", exc) from exc

        if not result.rows:
            raise self._not_found()
        return _public(result.rows[0])

    async def create_record(self, *, owner_id: str, payload: BaseModel) -> dict[str, Any]:
        now = datetime.now(UTC)
        values = {
            **payload.model_dump(),
            "id": str(uuid4()),
            "user_id": owner_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            row = await self._store.insert(self._resource.table, values)
        except StoreError as exc:
            raise self._dependency_error("create", exc) from exc
        return _public(row)

    async def update_record(self, *, owner_id: str, record_id: str, payload: BaseModel) -> dict[str, Any]:
        values = {**payload.model_dump(), "updated_at": datetime.now(UTC)}
        try:
            rows = await self._store.update(
                self._resource.table,
                filters=self._record_filters(owner_id, record_id),
                values=values,
            )
        except StoreError as exc:
            raise self._dependency_error("update", exc) from exc

        if not rows:
            raise self._not_found()
        return _public(rows[0])

    async def delete_record(self, *, owner_id: str, record_id: str) -> None:
        try:
            removed = await self._store.delete(
                self._resource.table,
                filters=self._record_filters(owner_id, record_id),
            )
        except StoreError as exc:
            raise self._dependency_error("delete", exc) from exc

        if removed == 0:
            raise self._not_found()

    async def _fetch_all(
        self,
        action: str,
        filters: Sequence[Filter],
        *,
        columns: Sequence[str] | None = None,
        ordered: bool = False,
    ) -> list[dict[str, Any]]:
        try:
            result = await self._store.select(
                self._resource.table,
                filters=filters,
                columns=columns,
                order_by=self._resource.sort if ordered else (),
            )
        except StoreError as exc:
            raise self._dependency_error(action, exc) from exc
        return result.rows

    async def export_csv(self, *, owner_id: str, params: QueryParams) -> str:
        filters = owner_scoped_filters(owner_id, params, self._resource.list_filters)
        rows = await self._fetch_all("export", filters, ordered=True)
        return to_csv(rows, self._resource.export_fields)

    async def distinct_values(
        self,
        *,
        owner_id: str,
        source: DistinctSource,
        params: QueryParams | None = None,
        narrow_by: Sequence[FilterSpec] = (),
    ) -> list[Any]:
        filters = owner_scoped_filters(owner_id, params or {}, narrow_by)
        filters += (Condition(source.column, "not_null"),)
        rows = await self._fetch_all("list distinct values of", filters, columns=[source.column])
        return collect_distinct(rows, source)

    async def statistics(self, *, owner_id: str, params: QueryParams) -> dict[str, Any]:
        spec = self._resource.statistics
        dimension = spec.dimension(params)
        filters = owner_scoped_filters(owner_id, params, spec.filters)
        rows = await self._fetch_all("summarize", filters)
        groups: list[GroupStat] = aggregate(
            rows,
            dimension,
            measure=spec.measure,
            breakdowns=spec.breakdowns,
        )

        distinct: dict[str, list[Any]] = {}
        for name, source in spec.distinct.items():
            distinct[name] = await self.distinct_values(owner_id=owner_id, source=source)

        return {
            "statistics": [asdict(group) for group in groups],
            "dimension": dimension.name,
            "distinct": distinct,
            "query": dict(params),
        }


__all__ = ["RecordService", "collect_distinct"]
