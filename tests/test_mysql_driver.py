"""Tests for the MySQL driver using a fake aiomysql connection."""

from __future__ import annotations

import struct
from datetime import datetime

import pymysql
import pytest
from pymysql.constants import FIELD_TYPE

from dbdesk.drivers import MySQLDriver, create_driver
from dbdesk.errors import ConnectionFailed, DefinitionUnavailable, QueryFailed
from dbdesk.executor import is_connection_loss
from dbdesk.models import COLUMNS_KEY, ConnectionDescriptor, EngineKind


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _FakeCursor:
    def __init__(self, connection: _FakeConnection) -> None:
        self._connection = connection
        self.description = None
        self._rows: list[tuple] = []

    async def __aenter__(self) -> _FakeCursor:
        return self

    async def __aexit__(self, *exc_info) -> None:  # type: ignore[no-untyped-def]
        return None

    async def execute(self, sql: str, params=None) -> int:  # type: ignore[no-untyped-def]
        self._connection.statements.append((sql, params))
        if self._connection.error is not None:
            raise self._connection.error
        for fragment, (description, rows) in self._connection.responses.items():
            if fragment in sql:
                self.description = description
                self._rows = rows
                return len(rows)
        self.description = None
        self._rows = []
        return 0

    async def fetchall(self) -> list[tuple]:
        return list(self._rows)


class _FakeConnection:
    def __init__(self) -> None:
        self.statements: list[tuple[str, object]] = []
        self.responses: dict[str, tuple[tuple, list[tuple]]] = {}
        self.error: Exception | None = None
        self.closed = False

    def cursor(self) -> _FakeCursor:
        return _FakeCursor(self)

    async def ensure_closed(self) -> None:
        self.closed = True

    def close(self) -> None:
        self.closed = True


def _column(name: str, type_code: int) -> tuple:
    return (name, type_code, None, None, None, None, True)


@pytest.fixture
def connection(monkeypatch: pytest.MonkeyPatch) -> _FakeConnection:
    connection = _FakeConnection()
    captured: dict[str, object] = {}

    async def _connect(**kwargs):  # type: ignore[no-untyped-def]
        captured.update(kwargs)
        return connection

    monkeypatch.setattr("dbdesk.drivers.mysql.aiomysql.connect", _connect)
    connection.kwargs = captured  # type: ignore[attr-defined]
    return connection


def _descriptor(**overrides) -> ConnectionDescriptor:  # type: ignore[no-untyped-def]
    values = {"kind": EngineKind.MYSQL, "name": "Prod", "host": "db.internal", "username": "app"}
    values.update(overrides)
    return ConnectionDescriptor(**values)


def test_factory_builds_mysql_driver() -> None:
    assert isinstance(create_driver(_descriptor()), MySQLDriver)


@pytest.mark.anyio
async def test_connect_defaults_to_information_schema(connection: _FakeConnection) -> None:
    driver = MySQLDriver(_descriptor())

    await driver.connect("s3cret")

    assert connection.kwargs["db"] == "information_schema"  # type: ignore[attr-defined]
    assert connection.kwargs["port"] == 3306  # type: ignore[attr-defined]
    assert connection.kwargs["password"] == "s3cret"  # type: ignore[attr-defined]
    assert connection.kwargs["autocommit"] is True  # type: ignore[attr-defined]


@pytest.mark.anyio
async def test_connect_failure_is_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _connect(**kwargs):  # type: ignore[no-untyped-def]
        raise pymysql.err.OperationalError(1045, "Access denied for user 'app'")

    monkeypatch.setattr("dbdesk.drivers.mysql.aiomysql.connect", _connect)

    with pytest.raises(ConnectionFailed, match="Access denied"):
        await MySQLDriver(_descriptor()).connect("wrong")


@pytest.mark.anyio
async def test_execute_normalizes_by_field_type(connection: _FakeConnection) -> None:
    connection.responses["FROM orders"] = (
        (_column("id", FIELD_TYPE.LONG), _column("placed", FIELD_TYPE.DATETIME), _column("shipped", FIELD_TYPE.DATE)),
        [(1, datetime(2024, 3, 5, 14, 7, 9), "0000-00-00"), (2, None, None)],
    )
    driver = MySQLDriver(_descriptor(database="shop"))
    await driver.connect("")

    rows = await driver.execute("SELECT id, placed, shipped FROM orders")

    assert rows == [
        {COLUMNS_KEY: "id,placed,shipped"},
        {"id": "1", "placed": "2024-03-05 14:07:09", "shipped": None},
        {"id": "2", "placed": None, "shipped": None},
    ]


@pytest.mark.anyio
async def test_execute_decodes_unconverted_temporal_bytes(connection: _FakeConnection) -> None:
    connection.responses["FROM shipments"] = (
        (
            _column("shipped", FIELD_TYPE.DATE),
            _column("arrived", FIELD_TYPE.DATETIME),
            _column("window", FIELD_TYPE.TIME),
        ),
        [(struct.pack("<HBB", 2024, 3, 5), b"2024-03-06 09:30:00", b"14:07:09")],
    )
    driver = MySQLDriver(_descriptor(database="shop"))
    await driver.connect("")

    rows = await driver.execute("SELECT shipped, arrived, window FROM shipments")

    assert rows[1] == {"shipped": "2024-03-05", "arrived": "2024-03-06 09:30:00", "window": "14:07:09"}


@pytest.mark.anyio
async def test_execute_without_result_set(connection: _FakeConnection) -> None:
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    assert await driver.execute("UPDATE orders SET status = 'void'") == []


@pytest.mark.anyio
async def test_lost_connection_error_is_recognized(connection: _FakeConnection) -> None:
    connection.error = pymysql.err.OperationalError(2013, "Lost connection to MySQL server during query")
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    with pytest.raises(QueryFailed) as excinfo:
        await driver.execute("SELECT 1")

    assert str(excinfo.value).startswith("Connection lost:")
    assert is_connection_loss(excinfo.value)


@pytest.mark.anyio
async def test_syntax_error_is_not_a_connection_loss(connection: _FakeConnection) -> None:
    connection.error = pymysql.err.ProgrammingError(1064, "You have an error in your SQL syntax")
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    with pytest.raises(QueryFailed) as excinfo:
        await driver.execute("SELEC 1")

    assert "SQL syntax" in str(excinfo.value)
    assert not is_connection_loss(excinfo.value)


@pytest.mark.anyio
async def test_list_databases_hides_system_schemas(connection: _FakeConnection) -> None:
    connection.responses["SHOW DATABASES"] = (
        (_column("Database", FIELD_TYPE.VAR_STRING),),
        [("information_schema",), ("mysql",), ("performance_schema",), ("shop",), ("sys",)],
    )
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    assert await driver.list_databases() == ["shop"]


@pytest.mark.anyio
async def test_table_and_column_comments(connection: _FakeConnection) -> None:
    connection.responses["information_schema.TABLES"] = (
        (_column("TABLE_NAME", FIELD_TYPE.VAR_STRING), _column("TABLE_COMMENT", FIELD_TYPE.VAR_STRING)),
        [("orders", "Customer orders"), ("users", "")],
    )
    connection.responses["information_schema.COLUMNS"] = (
        (
            _column("COLUMN_NAME", FIELD_TYPE.VAR_STRING),
            _column("COLUMN_COMMENT", FIELD_TYPE.VAR_STRING),
            _column("COLUMN_TYPE", FIELD_TYPE.VAR_STRING),
        ),
        [("id", "", "int"), ("total", "Order total", "decimal(10,2)")],
    )
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    tables = await driver.list_tables_with_descriptions("shop")
    columns = await driver.list_columns_with_descriptions("orders", "shop")

    assert [(table.name, table.description) for table in tables] == [("orders", "Customer orders"), ("users", None)]
    assert [(column.name, column.description, column.type) for column in columns] == [
        ("id", None, "int"),
        ("total", "Order total", "decimal(10,2)"),
    ]
    assert connection.statements[-1][1] == ("shop", "orders")


@pytest.mark.anyio
async def test_columns_need_a_database(connection: _FakeConnection) -> None:
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    assert await driver.list_columns_with_descriptions("orders") == []


@pytest.mark.anyio
async def test_switch_database_quotes_identifier(connection: _FakeConnection) -> None:
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    await driver.switch_database("sales`2024")

    assert connection.statements[-1][0] == "USE `sales``2024`"


@pytest.mark.anyio
async def test_definition_uses_show_create_table(connection: _FakeConnection) -> None:
    connection.responses["SHOW CREATE TABLE `orders`"] = (
        (_column("Table", FIELD_TYPE.VAR_STRING), _column("Create Table", FIELD_TYPE.VAR_STRING)),
        [("orders", "CREATE TABLE `orders` (\n  `id` int NOT NULL\n)")],
    )
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    assert await driver.get_definition("orders") == "CREATE TABLE `orders` (\n  `id` int NOT NULL\n)"
    with pytest.raises(DefinitionUnavailable):
        await driver.get_definition("ghosts")


@pytest.mark.anyio
async def test_disconnect_closes_gracefully(connection: _FakeConnection) -> None:
    driver = MySQLDriver(_descriptor())
    await driver.connect("")

    await driver.disconnect()

    assert connection.closed is True
    assert driver.connected is False
