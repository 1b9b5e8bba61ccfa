"""PostgreSQL driver backed by asyncpg."""

from __future__ import annotations

import re
from functools import partial
from typing import Any, Sequence

import asyncpg

from ..errors import ConnectionFailed, DefinitionUnavailable, NotConnected, QueryFailed
from ..models import ColumnInfo, ConnectionDescriptor, EngineKind, ResultRow, TableInfo, none_if_empty
from ..normalize import normalize_postgres
from .base import build_rows, quote_identifier

_RETURNING = re.compile(r"\bRETURNING\b", re.IGNORECASE)

_CONNECTION_ERRORS = (
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.PostgresConnectionError,
    OSError,
)


class PostgresDriver:
    """Network engine speaking the PostgreSQL protocol.

    PostgreSQL has no session-scoped ``USE``; switching the active database
    sets ``search_path`` to the selected schema instead.
    """

    kind = EngineKind.POSTGRESQL

    _SCHEMA_QUERY = """
        SELECT schema_name
        FROM information_schema.schemata
        WHERE schema_name NOT IN ('pg_catalog', 'information_schema')
          AND schema_name NOT LIKE 'pg_toast%'
          AND schema_name NOT LIKE 'pg_temp_%'
        ORDER BY schema_name
    """

    _TABLES_QUERY = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = COALESCE($1, current_schema())
          AND table_type = 'BASE TABLE'
        ORDER BY table_name
    """

    _TABLES_WITH_COMMENTS = """
        SELECT c.relname AS table_name, obj_description(c.oid, 'pg_class') AS description
        FROM pg_class c
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE n.nspname = COALESCE($1, current_schema()) AND c.relkind IN ('r', 'p')
        ORDER BY c.relname
    """

    _COLUMNS_WITH_COMMENTS = """
        SELECT a.attname AS column_name,
               format_type(a.atttypid, a.atttypmod) AS data_type,
               col_description(c.oid, a.attnum) AS description
        FROM pg_attribute a
        JOIN pg_class c ON c.oid = a.attrelid
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE n.nspname = COALESCE($2, current_schema())
          AND c.relname = $1
          AND a.attnum > 0
          AND NOT a.attisdropped
        ORDER BY a.attnum
    """

    _DEFINITION_COLUMNS = """
        SELECT a.attname AS column_name,
               format_type(a.atttypid, a.atttypmod) AS data_type,
               a.attnotnull AS not_null,
               pg_get_expr(d.adbin, d.adrelid) AS default_value
        FROM pg_attribute a
        JOIN pg_class c ON c.oid = a.attrelid
        JOIN pg_namespace n ON n.oid = c.relnamespace
        LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
        WHERE n.nspname = current_schema()
          AND c.relname = $1
          AND a.attnum > 0
          AND NOT a.attisdropped
        ORDER BY a.attnum
    """

    _DEFINITION_CONSTRAINTS = """
        SELECT con.conname AS name, pg_get_constraintdef(con.oid) AS definition
        FROM pg_constraint con
        JOIN pg_class c ON c.oid = con.conrelid
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE n.nspname = current_schema() AND c.relname = $1
        ORDER BY con.contype, con.conname
    """

    def __init__(self, descriptor: ConnectionDescriptor, *, connect_timeout: float = 10.0) -> None:
        self._descriptor = descriptor
        self._connect_timeout = connect_timeout
        self._conn: asyncpg.Connection | None = None

    @property
    def label(self) -> str:
        return self.kind.label

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def closed(self) -> bool:
        return self._conn is not None and self._conn.is_closed()

    async def connect(self, credential: str = "") -> None:
        try:
            self._conn = await asyncpg.connect(**self._connect_kwargs(credential))
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise ConnectionFailed(
                f"Failed to connect to '{self._descriptor.display_name}': {exc}"
            ) from exc

    async def disconnect(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None and not conn.is_closed():
            await conn.close()

    async def reset(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.terminate()
        except Exception:  # pragma: no cover - best effort cleanup
            pass

    async def ping(self) -> None:
        await self._fetch("SELECT 1")

    async def switch_database(self, name: str) -> None:
        await self._run(f"SET search_path TO {quote_identifier(name)}")

    async def list_databases(self) -> list[str]:
        records = await self._fetch(self._SCHEMA_QUERY)
        return [str(record["schema_name"]) for record in records]

    async def list_tables(self, database: str | None = None) -> list[str]:
        records = await self._fetch(self._TABLES_QUERY, database)
        return [str(record["table_name"]) for record in records]

    async def list_tables_with_descriptions(self, database: str | None = None) -> list[TableInfo]:
        records = await self._fetch(self._TABLES_WITH_COMMENTS, database)
        return [
            TableInfo(name=str(record["table_name"]), description=none_if_empty(record["description"]))
            for record in records
        ]

    async def list_columns_with_descriptions(
        self, table: str, database: str | None = None
    ) -> list[ColumnInfo]:
        records = await self._fetch(self._COLUMNS_WITH_COMMENTS, table, database)
        return [
            ColumnInfo(
                name=str(record["column_name"]),
                description=none_if_empty(record["description"]),
                type=none_if_empty(record["data_type"]),
            )
            for record in records
        ]

    async def execute(self, sql: str) -> list[ResultRow]:
        conn = self._require()
        statement = sql.strip()
        try:
            if _returns_rows(statement):
                prepared = await conn.prepare(statement)
                attributes = prepared.get_attributes()
                records = await prepared.fetch()
            else:
                await conn.execute(statement)
                attributes, records = (), []
        except _CONNECTION_ERRORS as exc:
            raise QueryFailed(f"Connection lost: {exc}") from exc
        except asyncpg.PostgresError as exc:
            raise QueryFailed(str(exc)) from exc
        columns = tuple(attribute.name for attribute in attributes)
        normalizers = [
            partial(normalize_postgres, type_name=attribute.type.name) for attribute in attributes
        ]
        return build_rows(columns, records, normalizers)

    async def get_definition(self, table: str) -> str:
        columns = await self._fetch(self._DEFINITION_COLUMNS, table)
        if not columns:
            raise DefinitionUnavailable(table)
        constraints = await self._fetch(self._DEFINITION_CONSTRAINTS, table)
        lines = []
        for record in columns:
            line = f"    {quote_identifier(record['column_name'])} {record['data_type']}"
            if record["default_value"] is not None:
                line += f" DEFAULT {record['default_value']}"
            if record["not_null"]:
                line += " NOT NULL"
            lines.append(line)
        for record in constraints:
            lines.append(f"    CONSTRAINT {quote_identifier(record['name'])} {record['definition']}")
        body = ",\n".join(lines)
        return f"CREATE TABLE {quote_identifier(table)} (\n{body}\n);"

    def _connect_kwargs(self, credential: str) -> dict[str, object]:
        descriptor = self._descriptor
        kwargs: dict[str, object] = {
            "host": descriptor.host,
            "port": descriptor.effective_port,
            "database": descriptor.database or "postgres",
            "timeout": self._connect_timeout,
        }
        if descriptor.username:
            kwargs["user"] = descriptor.username
        if credential:
            kwargs["password"] = credential
        return kwargs

    def _require(self) -> asyncpg.Connection:
        if self._conn is None:
            raise NotConnected()
        return self._conn

    async def _fetch(self, sql: str, *args: Any) -> Sequence[Any]:
        conn = self._require()
        try:
            return await conn.fetch(sql, *args)
        except _CONNECTION_ERRORS as exc:
            raise QueryFailed(f"Connection lost: {exc}") from exc
        except asyncpg.PostgresError as exc:
            raise QueryFailed(str(exc)) from exc

    async def _run(self, sql: str) -> None:
        conn = self._require()
        try:
            await conn.execute(sql)
        except _CONNECTION_ERRORS as exc:
            raise QueryFailed(f"Connection lost: {exc}") from exc
        except asyncpg.PostgresError as exc:
            raise QueryFailed(str(exc)) from exc


def _returns_rows(statement: str) -> bool:
    token = statement.lstrip().split(None, 1)
    if not token:
        return False
    head = token[0].lower()
    if head in {"select", "with", "show", "values", "table", "explain"}:
        return True
    return bool(_RETURNING.search(statement))


__all__ = ["PostgresDriver"]
