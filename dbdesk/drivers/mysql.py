"""MySQL driver backed by aiomysql."""

from __future__ import annotations

from functools import partial
from typing import Any, Sequence

import aiomysql
import pymysql

from ..errors import ConnectionFailed, DefinitionUnavailable, NotConnected, QueryFailed
from ..models import ColumnInfo, ConnectionDescriptor, EngineKind, ResultRow, TableInfo, none_if_empty
from ..normalize import normalize_mysql
from .base import build_rows, quote_identifier

SYSTEM_DATABASES = frozenset({"information_schema", "mysql", "performance_schema", "sys"})

# Client error codes for "server has gone away", "lost connection" and friends.
_CONNECTION_LOST_CODES = frozenset({2006, 2013, 2055})


class MySQLDriver:
    """Network engine speaking the MySQL protocol."""

    kind = EngineKind.MYSQL

    _TABLES_WITH_COMMENTS = """
        SELECT TABLE_NAME, TABLE_COMMENT
        FROM information_schema.TABLES
        WHERE TABLE_SCHEMA = %s
        ORDER BY TABLE_NAME
    """

    _COLUMNS_WITH_COMMENTS = """
        SELECT COLUMN_NAME, COLUMN_COMMENT, COLUMN_TYPE
        FROM information_schema.COLUMNS
        WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s
        ORDER BY ORDINAL_POSITION
    """

    def __init__(self, descriptor: ConnectionDescriptor, *, connect_timeout: float = 10.0) -> None:
        self._descriptor = descriptor
        self._connect_timeout = connect_timeout
        self._conn: aiomysql.Connection | None = None

    @property
    def label(self) -> str:
        return self.kind.label

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def closed(self) -> bool:
        return self._conn is not None and bool(self._conn.closed)

    async def connect(self, credential: str = "") -> None:
        try:
            self._conn = await aiomysql.connect(**self._connect_kwargs(credential))
        except (pymysql.err.MySQLError, OSError) as exc:
            raise ConnectionFailed(
                f"Failed to connect to '{self._descriptor.display_name}': {exc}"
            ) from exc

    async def disconnect(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None and not conn.closed:
            await conn.ensure_closed()

    async def reset(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        except Exception:  # pragma: no cover - best effort cleanup
            pass

    async def ping(self) -> None:
        await self._fetch("SELECT 1")

    async def switch_database(self, name: str) -> None:
        await self._fetch(f"USE {quote_identifier(name, '`')}")

    async def list_databases(self) -> list[str]:
        _, records = await self._fetch("SHOW DATABASES")
        names = (str(record[0]) for record in records)
        return [name for name in names if name not in SYSTEM_DATABASES]

    async def list_tables(self, database: str | None = None) -> list[str]:
        sql = "SHOW TABLES"
        if database:
            sql += f" FROM {quote_identifier(database, '`')}"
        _, records = await self._fetch(sql)
        return [str(record[0]) for record in records]

    async def list_tables_with_descriptions(self, database: str | None = None) -> list[TableInfo]:
        if not database:
            return [TableInfo(name=name) for name in await self.list_tables()]
        _, records = await self._fetch(self._TABLES_WITH_COMMENTS, (database,))
        return [
            TableInfo(name=str(record[0]), description=none_if_empty(record[1]))
            for record in records
        ]

    async def list_columns_with_descriptions(
        self, table: str, database: str | None = None
    ) -> list[ColumnInfo]:
        if not database:
            return []
        _, records = await self._fetch(self._COLUMNS_WITH_COMMENTS, (database, table))
        return [
            ColumnInfo(
                name=str(record[0]),
                description=none_if_empty(record[1]),
                type=none_if_empty(record[2]),
            )
            for record in records
        ]

    async def execute(self, sql: str) -> list[ResultRow]:
        conn = self._require()
        try:
            async with conn.cursor() as cursor:
                await cursor.execute(sql)
                description = cursor.description or ()
                records = list(await cursor.fetchall()) if description else []
        except pymysql.err.MySQLError as exc:
            raise _translate(exc) from exc
        columns = tuple(str(item[0]) for item in description)
        normalizers = [partial(normalize_mysql, type_code=item[1]) for item in description]
        return build_rows(columns, records, normalizers)

    async def get_definition(self, table: str) -> str:
        columns, records = await self._fetch(f"SHOW CREATE TABLE {quote_identifier(table, '`')}")
        for record in records:
            for index, column in enumerate(columns):
                if "create table" in column.lower() and record[index]:
                    return str(record[index])
        raise DefinitionUnavailable(table)

    def _connect_kwargs(self, credential: str) -> dict[str, object]:
        descriptor = self._descriptor
        return {
            "host": descriptor.host,
            "port": descriptor.effective_port,
            "user": descriptor.username or "",
            "password": credential or "",
            # information_schema exists on every server; used when no database is configured.
            "db": descriptor.database or "information_schema",
            "autocommit": True,
            "connect_timeout": self._connect_timeout,
        }

    def _require(self) -> aiomysql.Connection:
        if self._conn is None:
            raise NotConnected()
        return self._conn

    async def _fetch(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> tuple[tuple[str, ...], list[Sequence[Any]]]:
        conn = self._require()
        try:
            async with conn.cursor() as cursor:
                await cursor.execute(sql, params)
                columns = tuple(str(item[0]) for item in cursor.description or ())
                records = list(await cursor.fetchall()) if columns else []
        except pymysql.err.MySQLError as exc:
            raise _translate(exc) from exc
        return columns, records


def _translate(exc: pymysql.err.MySQLError) -> QueryFailed:
    code = exc.args[0] if exc.args and isinstance(exc.args[0], int) else None
    if isinstance(exc, pymysql.err.InterfaceError) or code in _CONNECTION_LOST_CODES:
        return QueryFailed(f"Connection lost: {exc}")
    return QueryFailed(str(exc))


__all__ = ["MySQLDriver", "SYSTEM_DATABASES"]
