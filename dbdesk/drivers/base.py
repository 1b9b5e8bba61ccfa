"""Driver contract consumed uniformly by sessions, the executor and the introspector."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol, Sequence, runtime_checkable

from ..models import ColumnInfo, EngineKind, ResultRow, TableInfo, metadata_row


@runtime_checkable
class Driver(Protocol):
    """Capability surface exposed by every engine implementation.

    A driver holds at most one transport. ``connected`` reports whether a
    transport is present; ``closed`` reports whether that transport has been
    closed underneath us (server timeout, network drop).
    """

    kind: EngineKind

    @property
    def label(self) -> str: ...

    @property
    def connected(self) -> bool: ...

    @property
    def closed(self) -> bool: ...

    async def connect(self, credential: str) -> None:
        """Open the transport using the just-in-time resolved credential."""

    async def disconnect(self) -> None:
        """Close the transport gracefully; no-op when already disconnected."""

    async def reset(self) -> None:
        """Drop the transport without surfacing close errors."""

    async def ping(self) -> None:
        """Issue a trivial query; raises when the transport is unusable."""

    async def switch_database(self, name: str) -> None: ...

    async def list_databases(self) -> list[str]: ...

    async def list_tables(self, database: str | None = None) -> list[str]: ...

    async def list_tables_with_descriptions(self, database: str | None = None) -> list[TableInfo]: ...

    async def list_columns_with_descriptions(
        self, table: str, database: str | None = None
    ) -> list[ColumnInfo]: ...

    async def execute(self, sql: str) -> list[ResultRow]: ...

    async def get_definition(self, table: str) -> str: ...


def quote_identifier(name: str, quote: str = '"') -> str:
    """Quote an identifier, doubling embedded quote characters."""

    return f"{quote}{name.replace(quote, quote * 2)}{quote}"


def build_rows(
    columns: Sequence[str],
    records: Iterable[Sequence[Any]],
    normalizers: Sequence[Callable[[Any], str | None]],
) -> list[ResultRow]:
    """Assemble the wire shape: metadata row first, then one mapping per record."""

    rows: list[ResultRow] = []
    if columns:
        rows.append(metadata_row(columns))
    for record in records:
        row: ResultRow = {}
        for index, column in enumerate(columns):
            row[column] = normalizers[index](record[index])
        rows.append(row)
    return rows


__all__ = ["Driver", "build_rows", "quote_identifier"]
