"""
PostgreSQL record store (raw SQL) using asyncpg.

The store owns the connection pool. FastAPI opens it on startup and closes
it on shutdown (see `lifelog/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
- identifiers are validated and double-quoted; values are always bound.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

import asyncpg

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

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_BINARY_OPERATORS: dict[str, str] = {
    "eq": "=",
    "neq": "<>",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "ilike": "ILIKE",
    "contains": "@>",
    "overlaps": "&&",
}


def quote_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name or ""):
        raise StoreError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


class _Params:
    def __init__(self) -> None:
        self.values: list[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def _compile_condition(condition: Condition, params: _Params) -> str:
    column = quote_identifier(condition.column)
    if condition.op == "is_null":
        return f"{column} IS NULL"
    if condition.op == "not_null":
        return f"{column} IS NOT NULL"
    if condition.op == "in":
        return f"{column} = ANY({params.bind(list(condition.value or []))})"

    value = condition.value
    if condition.op in ("contains", "overlaps") and not isinstance(value, (list, tuple)):
        value = [value]
    return f"{column} {_BINARY_OPERATORS[condition.op]} {params.bind(value)}"


def _compile_where(filters: Sequence[Filter], params: _Params) -> str:
    clauses: list[str] = []
    for item in filters:
        if isinstance(item, AnyOf):
            if not item.conditions:
                clauses.append("FALSE")
                continue
            inner = " OR ".join(_compile_condition(condition, params) for condition in item.conditions)
            clauses.append(f"({inner})")
        else:
            clauses.append(_compile_condition(item, params))
    if not clauses:
        return ""
    return " WHERE " + " AND ".join(clauses)


def compile_select(
    table: str,
    *,
    filters: Sequence[Filter] = (),
    columns: Sequence[str] | None = None,
    order_by: Sequence[SortKey] = (),
    offset: int | None = None,
    limit: int | None = None,
) -> tuple[str, list[Any]]:
    params = _Params()
    selected = ", ".join(quote_identifier(column) for column in columns) if columns else "*"
    sql = f"SELECT {selected} FROM {quote_identifier(table)}"
    sql += _compile_where(filters, params)
    if order_by:
        ordering = ", ".join(
            f"{quote_identifier(key.column)} {'DESC' if key.descending else 'ASC'} NULLS LAST" for key in order_by
        )
        sql += f" ORDER BY {ordering}"
    if limit is not None:
        sql += f" LIMIT {params.bind(int(limit))}"
    if offset:
        sql += f" OFFSET {params.bind(int(offset))}"
    return sql, params.values


def compile_count(table: str, *, filters: Sequence[Filter] = ()) -> tuple[str, list[Any]]:
    params = _Params()
    sql = f"SELECT count(*) AS total FROM {quote_identifier(table)}" + _compile_where(filters, params)
    return sql, params.values


def compile_insert(table: str, values: Mapping[str, Any]) -> tuple[str, list[Any]]:
    if not values:
        raise StoreError("Insert requires at least one column")
    params = _Params()
    columns = ", ".join(quote_identifier(column) for column in values)
    placeholders = ", ".join(params.bind(value) for value in values.values())
    sql = f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({placeholders}) RETURNING *"
    return sql, params.values


def compile_update(
    table: str,
    *,
    filters: Sequence[Filter],
    values: Mapping[str, Any],
) -> tuple[str, list[Any]]:
    if not values:
        raise StoreError("Update requires at least one column")
    params = _Params()
    assignments = ", ".join(f"{quote_identifier(column)} = {params.bind(value)}" for column, value in values.items())
    sql = f"UPDATE {quote_identifier(table)} SET {assignments}"
    sql += _compile_where(filters, params)
    return sql + " RETURNING *", params.values


def compile_delete(table: str, *, filters: Sequence[Filter]) -> tuple[str, list[Any]]:
    params = _Params()
    sql = f"DELETE FROM {quote_identifier(table)}" + _compile_where(filters, params)
    return sql, params.values


def _normalize_value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return {key: _normalize_value(value) for key, value in dict(record).items()}


def _affected_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 3".
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresStore(RecordStore):
    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 30.0,
    ) -> None:
        if not (dsn or "").strip():
            raise StoreError("Database URL is not set.")
        self._dsn = dsn.strip()
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        if self._pool is not None:
            return None
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
            )
        except (asyncpg.PostgresError, OSError, ValueError) as exc:
            raise StoreError(f"Could not open database pool: {exc}") from exc

    async def close(self) -> None:
        if self._pool is None:
            return None
        await self._pool.close()
        self._pool = None

    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StoreError("DB pool is not initialized. Call connect() on startup.")
        return self._pool

    async def _fetch(
        self,
        sql: str,
        args: Sequence[Any],
        *,
        connection: asyncpg.Connection | None = None,
    ) -> list[dict[str, Any]]:
        executor = connection if connection is not None else self.pool()
        try:
            rows = await executor.fetch(sql, *args)
        except asyncpg.UniqueViolationError as exc:
            raise UniqueViolation(str(exc), column=getattr(exc, "column_name", None)) from exc
        except (asyncpg.PostgresError, OSError) as exc:
            raise StoreError(str(exc)) from exc
        return [_record_to_dict(row) for row in rows]

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
        sql, args = compile_select(
            table,
            filters=filters,
            columns=columns,
            order_by=order_by,
            offset=offset,
            limit=limit,
        )
        if not with_count:
            return SelectResult(rows=await self._fetch(sql, args))

        count_sql, count_args = compile_count(table, filters=filters)
        # Page and total read the same snapshot.
        try:
            async with self.pool().acquire() as conn:
                async with conn.transaction(isolation="repeatable_read", readonly=True):
                    rows = await self._fetch(sql, args, connection=conn)
                    count_rows = await self._fetch(count_sql, count_args, connection=conn)
        except (asyncpg.PostgresError, OSError) as exc:
            raise StoreError(str(exc)) from exc
        count = int(count_rows[0]["total"]) if count_rows else 0
        return SelectResult(rows=rows, count=count)

    async def insert(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        sql, args = compile_insert(table, values)
        rows = await self._fetch(sql, args)
        if not rows:
            raise StoreError(f"Insert into {table} returned no row.")
        return rows[0]

    async def update(
        self,
        table: str,
        *,
        filters: Sequence[Filter],
        values: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        sql, args = compile_update(table, filters=filters, values=values)
        return await self._fetch(sql, args)

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        sql, args = compile_delete(table, filters=filters)
        try:
            status = await self.pool().execute(sql, *args)
        except (asyncpg.PostgresError, OSError) as exc:
            raise StoreError(str(exc)) from exc
        return _affected_rows(status)


__all__ = [
    "PostgresStore",
    "compile_count",
    "compile_delete",
    "compile_insert",
    "compile_select",
    "compile_update",
    "quote_identifier",
]
