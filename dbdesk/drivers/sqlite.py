"""SQLite driver backed by aiosqlite."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Sequence

import aiosqlite

from ..errors import ConnectionFailed, DefinitionUnavailable, NotConnected, QueryFailed
from ..models import ColumnInfo, ConnectionDescriptor, EngineKind, ResultRow, TableInfo, none_if_empty
from ..normalize import normalize_sqlite
from .base import build_rows, quote_identifier


class SqliteDriver:
    """File-based engine; one aiosqlite connection per driver."""

    kind = EngineKind.SQLITE

    _TABLES_QUERY = "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    _DEFINITION_QUERY = "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?"

    def __init__(self, descriptor: ConnectionDescriptor) -> None:
        self._descriptor = descriptor
        self._conn: aiosqlite.Connection | None = None

    @property
    def label(self) -> str:
        return self.kind.label

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def closed(self) -> bool:
        # Local files are never dropped by an intermediary.
        return False

    async def connect(self, credential: str = "") -> None:
        path = self._resolve_path()
        try:
            self._conn = await aiosqlite.connect(str(path), isolation_level=None)
        except (sqlite3.Error, OSError) as exc:
            raise ConnectionFailed(f"Failed to open '{path}': {exc}") from exc

    async def disconnect(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()

    async def reset(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            await conn.close()
        except Exception:  # pragma: no cover - best effort cleanup
            pass

    async def ping(self) -> None:
        await self._fetch("SELECT 1")

    async def switch_database(self, name: str) -> None:
        if name != "main":
            raise QueryFailed(f"SQLite connections only expose the 'main' database, not '{name}'")

    async def list_databases(self) -> list[str]:
        return ["main"]

    async def list_tables(self, database: str | None = None) -> list[str]:
        _, records = await self._fetch(self._TABLES_QUERY)
        return [str(record[0]) for record in records]

    async def list_tables_with_descriptions(self, database: str | None = None) -> list[TableInfo]:
        # SQLite has no table comments.
        return [TableInfo(name=name) for name in await self.list_tables(database)]

    async def list_columns_with_descriptions(
        self, table: str, database: str | None = None
    ) -> list[ColumnInfo]:
        _, records = await self._fetch(f"PRAGMA table_info({quote_identifier(table)})")
        # PRAGMA rows: cid, name, type, notnull, dflt_value, pk (already in cid order)
        return [ColumnInfo(name=str(record[1]), type=none_if_empty(record[2])) for record in records]

    async def execute(self, sql: str) -> list[ResultRow]:
        columns, records = await self._fetch(sql)
        return build_rows(columns, records, [normalize_sqlite] * len(columns))

    async def get_definition(self, table: str) -> str:
        _, records = await self._fetch(self._DEFINITION_QUERY, (table,))
        if records and records[0][0]:
            return str(records[0][0])
        raise DefinitionUnavailable(table, "Table not found or no DDL available")

    def _resolve_path(self) -> Path:
        if not self._descriptor.path:
            raise ConnectionFailed("Missing configuration: file path is required")
        path = Path(self._descriptor.path).expanduser()
        if not path.parent.is_dir():
            raise ConnectionFailed(f"Directory for '{path}' does not exist")
        return path

    async def _fetch(
        self, sql: str, params: Sequence[Any] = ()
    ) -> tuple[tuple[str, ...], list[Sequence[Any]]]:
        if self._conn is None:
            raise NotConnected()
        try:
            async with self._conn.execute(sql, params) as cursor:
                columns = tuple(str(item[0]) for item in cursor.description or ())
                records = list(await cursor.fetchall())
        except sqlite3.Error as exc:
            raise QueryFailed(str(exc)) from exc
        return columns, records


__all__ = ["SqliteDriver"]
