"""Shared dataclasses used across driver/session modules."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Sequence

from .errors import ConnectionFailed

ResultRow = dict[str, str | None]

COLUMNS_KEY = "__columns__"


class EngineKind(str, Enum):
    """Closed set of supported database engines."""

    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"

    @property
    def label(self) -> str:
        return _ENGINE_LABELS[self]

    @property
    def is_file_based(self) -> bool:
        return self is EngineKind.SQLITE

    @property
    def default_port(self) -> int | None:
        return _DEFAULT_PORTS.get(self)


_ENGINE_LABELS = {
    EngineKind.SQLITE: "SQLite",
    EngineKind.MYSQL: "MySQL",
    EngineKind.POSTGRESQL: "PostgreSQL",
}

_DEFAULT_PORTS = {
    EngineKind.MYSQL: 3306,
    EngineKind.POSTGRESQL: 5432,
}


@dataclass(frozen=True, slots=True)
class ConnectionDescriptor:
    """Runtime representation of a saved connection."""

    kind: EngineKind
    name: str = ""
    host: str | None = None
    port: int | None = None
    username: str | None = None
    database: str | None = None
    path: str | None = None
    credential_ref: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.path:
            return Path(self.path).name
        return self.host or self.kind.label

    @property
    def secret_key(self) -> str:
        """Key used to resolve the credential from the secret store."""

        return self.credential_ref or self.id

    @property
    def effective_port(self) -> int | None:
        return self.port if self.port is not None else self.kind.default_port

    def validate(self) -> None:
        """Check that the engine-specific addressing fields are populated."""

        if self.kind.is_file_based:
            if not self.path:
                raise ConnectionFailed("Missing configuration: file path is required")
            return
        if not self.host:
            raise ConnectionFailed("Missing configuration: host is required")
        if self.username is None:
            raise ConnectionFailed("Missing configuration: username is required")

    def renamed(self, name: str) -> ConnectionDescriptor:
        """Return a copy with a new display name."""

        return replace(self, name=name)

    def with_database(self, database: str | None) -> ConnectionDescriptor:
        """Return a copy targeting another database/schema."""

        return replace(self, database=database)


@dataclass(frozen=True, slots=True)
class TableInfo:
    """Table name plus optional human-readable description."""

    name: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """Column header or schema entry."""

    name: str
    description: str | None = None
    type: str | None = None

    @property
    def display_text(self) -> str:
        alias = self.description or self.name
        return f"{self.name} '{alias}'"


def none_if_empty(value: object) -> str | None:
    """Collapse empty descriptions to ``None`` so callers see one "absent" value."""

    if value is None:
        return None
    text = str(value)
    return text or None


def metadata_row(columns: Sequence[str]) -> ResultRow:
    return {COLUMNS_KEY: ",".join(columns)}


def column_order(rows: Sequence[ResultRow]) -> tuple[str, ...]:
    """Recover declaration order from the leading metadata row."""

    if not rows or COLUMNS_KEY not in rows[0]:
        return ()
    joined = rows[0][COLUMNS_KEY] or ""
    return tuple(joined.split(",")) if joined else ()


def data_rows(rows: Sequence[ResultRow]) -> list[ResultRow]:
    """Strip the metadata row, returning only engine rows."""

    if rows and COLUMNS_KEY in rows[0]:
        return list(rows[1:])
    return list(rows)


__all__ = [
    "COLUMNS_KEY",
    "ColumnInfo",
    "ConnectionDescriptor",
    "EngineKind",
    "ResultRow",
    "TableInfo",
    "column_order",
    "data_rows",
    "metadata_row",
    "none_if_empty",
]
