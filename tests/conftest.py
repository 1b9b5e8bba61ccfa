"""Shared fakes for session, executor and introspection tests."""

from __future__ import annotations

import pytest

from dbdesk.errors import DefinitionUnavailable
from dbdesk.models import COLUMNS_KEY, ColumnInfo, EngineKind, ResultRow, TableInfo


class _FakeDriver:
    """Scriptable in-memory driver; queue exceptions in ``failures`` to make calls fail."""

    kind = EngineKind.MYSQL

    def __init__(self) -> None:
        self._connected = False
        self.dropped = False
        self.connect_calls: list[str] = []
        self.reset_calls = 0
        self.disconnect_calls = 0
        self.ping_calls = 0
        self.ping_error: Exception | None = None
        self.connect_error: Exception | None = None
        self.switch_error: Exception | None = None
        self.switched: list[str] = []
        self.executed: list[str] = []
        self.failures: list[Exception] = []
        self.results: dict[str, list[ResultRow]] = {}
        self.scopes: list[str | None] = []

    @property
    def label(self) -> str:
        return self.kind.label

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def closed(self) -> bool:
        return self._connected and self.dropped

    async def connect(self, credential: str) -> None:
        self.connect_calls.append(credential)
        if self.connect_error is not None:
            raise self.connect_error
        self._connected = True
        self.dropped = False

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    async def reset(self) -> None:
        self.reset_calls += 1
        self._connected = False

    async def ping(self) -> None:
        self.ping_calls += 1
        if self.ping_error is not None:
            raise self.ping_error

    async def switch_database(self, name: str) -> None:
        if self.switch_error is not None:
            raise self.switch_error
        self.switched.append(name)

    async def list_databases(self) -> list[str]:
        self._maybe_fail()
        return ["app", "logs"]

    async def list_tables(self, database: str | None = None) -> list[str]:
        self.scopes.append(database)
        self._maybe_fail()
        return ["orders", "users"]

    async def list_tables_with_descriptions(self, database: str | None = None) -> list[TableInfo]:
        self.scopes.append(database)
        self._maybe_fail()
        return [TableInfo(name="orders", description="Customer orders"), TableInfo(name="users", description="")]

    async def list_columns_with_descriptions(
        self, table: str, database: str | None = None
    ) -> list[ColumnInfo]:
        self.scopes.append(database)
        self._maybe_fail()
        return [
            ColumnInfo(name="id", description="", type="int"),
            ColumnInfo(name="email", description="Email address", type="varchar(255)"),
        ]

    async def execute(self, sql: str) -> list[ResultRow]:
        self.executed.append(sql)
        self._maybe_fail()
        return self.results.get(sql, [{COLUMNS_KEY: "n"}, {"n": "1"}])

    async def get_definition(self, table: str) -> str:
        self._maybe_fail()
        if table == "missing":
            raise DefinitionUnavailable(table)
        return f"CREATE TABLE `{table}` (`id` int)"

    def _maybe_fail(self) -> None:
        if self.failures:
            raise self.failures.pop(0)


@pytest.fixture
def fake_driver() -> _FakeDriver:
    return _FakeDriver()
