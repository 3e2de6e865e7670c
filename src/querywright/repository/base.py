from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set
from uuid import uuid4

from querywright.base.connection import Connection, QueryResult
from querywright.exception import RepositoryError
from querywright.query import QueryBuilder

from .types import FindOptions, PaginatedResult, RepositoryConfig, Row

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


class BaseRepository:
    """
    Tenant-scoped CRUD for one table, built on `QueryBuilder`.

    Every read filters on the tenant column, soft-deleted rows are hidden
    unless asked for, and caller data can never set reserved columns.
    Each method takes an optional `executor`: pass the connection of a
    running transaction to take part in it, otherwise the repository's pool
    is used.

    Example:

        ```python
        class PatientRepository(BaseRepository):
            config = RepositoryConfig(
                table_name="patients",
                columns=["id", "tenant_id", "first_name", "created_at",
                         "updated_at", "deleted_at"],
            )

        patients = PatientRepository(pool)
        await patients.find_by_id(patient_id, tenant_id)
        ```
    """

    config: Optional[RepositoryConfig] = None

    def __init__(
        self, pool: Any, config: Optional[RepositoryConfig] = None
    ) -> None:
        config = config or self.__class__.config
        if config is None:
            raise RepositoryError(
                f"{self.__class__.__name__} has no RepositoryConfig"
            )
        self.pool = pool
        self.config = config

    @property
    def table_name(self) -> str:
        return self.config.table_name

    @property
    def columns(self) -> Sequence[str]:
        return self.config.columns

    def _reserved_columns(self) -> Set[str]:
        reserved = {
            self.config.primary_key,
            self.config.tenant_column,
            "created_at",
            "updated_at",
        }
        if self.config.supports_soft_delete:
            reserved.add(self.config.soft_delete_column)
        return reserved

    def _strip_reserved(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        reserved = self._reserved_columns()
        return {
            key: value for key, value in data.items() if key not in reserved
        }

    def _returning(self) -> str:
        return ", ".join(f"{self.table_name}.{col}" for col in self.columns)

    def _check_soft_delete(self) -> None:
        if not self.config.supports_soft_delete:
            raise RepositoryError(
                f"Table {self.table_name} does not support soft delete"
            )

    def query_builder(self) -> QueryBuilder:
        """A builder already selecting this table's columns"""
        return QueryBuilder().select(list(self.columns)).from_(self.table_name)

    async def _query(
        self,
        executor: Optional[Connection],
        text: str,
        values: Optional[Sequence[Any]] = None,
    ) -> QueryResult:
        executor = executor or self.pool
        start = time.monotonic()
        try:
            result = await executor.execute(text, list(values or ()))
        except Exception as e:
            logger.error(
                "Repository query failed: table=%s duration=%.1fms "
                "query=%s error=%s",
                self.table_name,
                (time.monotonic() - start) * 1000,
                text[:200],
                e,
            )
            raise
        logger.debug(
            "Repository query executed: table=%s duration=%.1fms "
            "row_count=%s",
            self.table_name,
            (time.monotonic() - start) * 1000,
            result.row_count,
        )
        return result

    async def find_by_id(
        self, id: Any, tenant_id: Any, executor: Optional[Connection] = None
    ) -> Optional[Row]:
        builder = self.query_builder().where(
            {self.config.primary_key: id, self.config.tenant_column: tenant_id}
        )
        if self.config.supports_soft_delete:
            builder.where_null(self.config.soft_delete_column)

        text, values = builder.build()
        result = await self._query(executor, text, values)
        return result.first

    async def find_all(
        self,
        tenant_id: Any,
        options: Optional[FindOptions] = None,
        executor: Optional[Connection] = None,
    ) -> List[Row]:
        return await self.find_where({}, tenant_id, options, executor)

    async def find_where(
        self,
        conditions: Mapping[str, Any],
        tenant_id: Any,
        options: Optional[FindOptions] = None,
        executor: Optional[Connection] = None,
    ) -> List[Row]:
        options = options or FindOptions()
        builder = self.query_builder().where(
            {**conditions, self.config.tenant_column: tenant_id}
        )

        if self.config.supports_soft_delete and not options.include_deleted:
            builder.where_null(self.config.soft_delete_column)
        if options.order_by:
            builder.order_by(options.order_by, options.direction)
        if options.limit is not None:
            builder.limit(options.limit)
        if options.offset is not None:
            builder.offset(options.offset)

        text, values = builder.build()
        result = await self._query(executor, text, values)
        return result.rows

    async def find_one_where(
        self,
        conditions: Mapping[str, Any],
        tenant_id: Any,
        executor: Optional[Connection] = None,
    ) -> Optional[Row]:
        rows = await self.find_where(
            conditions, tenant_id, FindOptions(limit=1), executor
        )
        return rows[0] if rows else None

    async def find_paginated(
        self,
        tenant_id: Any,
        options: Optional[FindOptions] = None,
        executor: Optional[Connection] = None,
    ) -> PaginatedResult[Row]:
        options = options or FindOptions()
        limit = DEFAULT_PAGE_SIZE if options.limit is None else options.limit
        offset = options.offset or 0

        total = await self.count(
            tenant_id, include_deleted=options.include_deleted,
            executor=executor,
        )
        data = await self.find_all(
            tenant_id,
            FindOptions(
                order_by=options.order_by,
                direction=options.direction,
                limit=limit,
                offset=offset,
                include_deleted=options.include_deleted,
            ),
            executor,
        )
        return PaginatedResult(
            data=data,
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(data) < total,
        )

    async def count(
        self,
        tenant_id: Any,
        where: Optional[Mapping[str, Any]] = None,
        include_deleted: bool = False,
        executor: Optional[Connection] = None,
    ) -> int:
        builder = (
            QueryBuilder()
            .select_count()
            .from_(self.table_name)
            .where({**(where or {}), self.config.tenant_column: tenant_id})
        )
        if self.config.supports_soft_delete and not include_deleted:
            builder.where_null(self.config.soft_delete_column)

        text, values = builder.build()
        result = await self._query(executor, text, values)
        row = result.first
        return int(row["count"]) if row else 0

    async def exists(
        self, id: Any, tenant_id: Any, executor: Optional[Connection] = None
    ) -> bool:
        total = await self.count(
            tenant_id, {self.config.primary_key: id}, executor=executor
        )
        return total > 0

    async def create(
        self,
        data: Mapping[str, Any],
        tenant_id: Any,
        executor: Optional[Connection] = None,
    ) -> Row:
        insert_data = self._insert_data(data, tenant_id)
        columns = list(insert_data)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))

        text = (
            f"INSERT INTO {self.table_name} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) "
            f"RETURNING {self._returning()}"
        )
        result = await self._query(executor, text, list(insert_data.values()))
        if not result.rows:
            raise RepositoryError(f"Failed to create {self.table_name} record")
        return result.rows[0]

    async def create_many(
        self,
        items: Sequence[Mapping[str, Any]],
        tenant_id: Any,
        executor: Optional[Connection] = None,
    ) -> List[Row]:
        # one statement per row on the same executor
        return [
            await self.create(data, tenant_id, executor) for data in items
        ]

    async def update(
        self,
        id: Any,
        data: Mapping[str, Any],
        tenant_id: Any,
        executor: Optional[Connection] = None,
    ) -> Optional[Row]:
        safe_data = self._strip_reserved(data)
        if not safe_data:
            return await self.find_by_id(id, tenant_id, executor)

        update_data = {**safe_data, "updated_at": _now()}
        assignments = ", ".join(
            f"{column} = ${i}" for i, column in enumerate(update_data, 1)
        )
        id_index = len(update_data) + 1
        where = (
            f"{self.config.primary_key} = ${id_index} "
            f"AND {self.config.tenant_column} = ${id_index + 1}"
        )
        if self.config.supports_soft_delete:
            where += f" AND {self.config.soft_delete_column} IS NULL"

        text = (
            f"UPDATE {self.table_name} SET {assignments} WHERE {where} "
            f"RETURNING {self._returning()}"
        )
        values = [*update_data.values(), id, tenant_id]
        result = await self._query(executor, text, values)
        return result.first

    async def delete(
        self, id: Any, tenant_id: Any, executor: Optional[Connection] = None
    ) -> bool:
        """Permanently remove a row"""
        text = (
            f"DELETE FROM {self.table_name} "
            f"WHERE {self.config.primary_key} = $1 "
            f"AND {self.config.tenant_column} = $2"
        )
        result = await self._query(executor, text, [id, tenant_id])
        return result.row_count > 0

    async def soft_delete(
        self, id: Any, tenant_id: Any, executor: Optional[Connection] = None
    ) -> bool:
        self._check_soft_delete()
        column = self.config.soft_delete_column
        text = (
            f"UPDATE {self.table_name} "
            f"SET {column} = NOW(), updated_at = NOW() "
            f"WHERE {self.config.primary_key} = $1 "
            f"AND {self.config.tenant_column} = $2 AND {column} IS NULL"
        )
        result = await self._query(executor, text, [id, tenant_id])
        return result.row_count > 0

    async def restore(
        self, id: Any, tenant_id: Any, executor: Optional[Connection] = None
    ) -> Optional[Row]:
        self._check_soft_delete()
        column = self.config.soft_delete_column
        text = (
            f"UPDATE {self.table_name} "
            f"SET {column} = NULL, updated_at = NOW() "
            f"WHERE {self.config.primary_key} = $1 "
            f"AND {self.config.tenant_column} = $2 AND {column} IS NOT NULL "
            f"RETURNING {self._returning()}"
        )
        result = await self._query(executor, text, [id, tenant_id])
        return result.first

    async def upsert(
        self,
        data: Mapping[str, Any],
        tenant_id: Any,
        conflict_columns: Sequence[str],
        executor: Optional[Connection] = None,
    ) -> Row:
        """Insert a row, or update it when `conflict_columns` collide"""
        insert_data = self._insert_data(data, tenant_id)
        columns = list(insert_data)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))

        skip = {
            self.config.primary_key,
            self.config.tenant_column,
            "created_at",
            "updated_at",
            *conflict_columns,
        }
        updates = [
            f"{column} = EXCLUDED.{column}"
            for column in columns
            if column not in skip
        ]
        updates.append("updated_at = NOW()")

        text = (
            f"INSERT INTO {self.table_name} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT ({', '.join(conflict_columns)}) "
            f"DO UPDATE SET {', '.join(updates)} "
            f"RETURNING {self._returning()}"
        )
        result = await self._query(executor, text, list(insert_data.values()))
        if not result.rows:
            raise RepositoryError(f"Failed to upsert {self.table_name} record")
        return result.rows[0]

    async def raw_query(
        self,
        text: str,
        values: Optional[Sequence[Any]] = None,
        executor: Optional[Connection] = None,
    ) -> QueryResult:
        """Run hand-written SQL with `$n` placeholders. Use sparingly."""
        return await self._query(executor, text, values)

    def _insert_data(
        self, data: Mapping[str, Any], tenant_id: Any
    ) -> Dict[str, Any]:
        now = _now()
        return {
            **self._strip_reserved(data),
            self.config.primary_key: str(uuid4()),
            self.config.tenant_column: tenant_id,
            "created_at": now,
            "updated_at": now,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)
