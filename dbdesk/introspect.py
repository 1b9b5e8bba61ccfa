"""Schema browsing on top of the resilient executor."""

from __future__ import annotations

import logging

from .errors import DefinitionUnavailable
from .executor import ResilientExecutor
from .models import ColumnInfo, TableInfo, none_if_empty

LOG = logging.getLogger(__name__)


class SchemaIntrospector:
    """Lists databases, tables and columns for one session.

    Every call goes through the executor so browsing benefits from the same
    connect-if-absent and retry-once behaviour as statement execution. Table
    and column calls are scoped to the session's active database.
    """

    def __init__(self, executor: ResilientExecutor) -> None:
        self._executor = executor

    @property
    def database(self) -> str | None:
        return self._executor.session.active_database

    async def list_databases(self) -> list[str]:
        return list(await self._executor.call("list_databases"))

    async def list_tables(self) -> list[str]:
        return list(await self._executor.call("list_tables", self.database))

    async def list_tables_with_descriptions(self) -> list[TableInfo]:
        tables = await self._executor.call("list_tables_with_descriptions", self.database)
        return [TableInfo(name=table.name, description=none_if_empty(table.description)) for table in tables]

    async def list_columns_with_descriptions(self, table: str) -> list[ColumnInfo]:
        columns = await self._executor.call("list_columns_with_descriptions", table, self.database)
        return [
            ColumnInfo(
                name=column.name,
                description=none_if_empty(column.description),
                type=none_if_empty(column.type),
            )
            for column in columns
        ]

    async def get_definition(self, table: str) -> str:
        """Return the table's DDL text.

        Raises:
            DefinitionUnavailable: the engine has no definition for ``table``.
        """

        return await self._executor.call("get_definition", table)

    async def definition_or_message(self, table: str) -> str:
        """DDL text, or a readable explanation when none can be produced."""

        try:
            return await self.get_definition(table)
        except DefinitionUnavailable as exc:
            LOG.info("No definition available", extra={"table": table, "error": str(exc)})
            return f"-- {exc}"

    async def describe(self, table: str) -> dict[str, str]:
        """Map each column name to its description, falling back to the name."""

        columns = await self.list_columns_with_descriptions(table)
        return {column.name: column.description or column.name for column in columns}


__all__ = ["SchemaIntrospector"]
