"""Engine drivers implementing the shared :class:`Driver` capability surface."""

from __future__ import annotations

from ..models import ConnectionDescriptor, EngineKind
from .base import Driver, build_rows, quote_identifier
from .mysql import MySQLDriver
from .postgresql import PostgresDriver
from .sqlite import SqliteDriver

__all__ = [
    "Driver",
    "MySQLDriver",
    "PostgresDriver",
    "SqliteDriver",
    "build_rows",
    "create_driver",
    "quote_identifier",
]


_DRIVERS = {
    EngineKind.SQLITE: SqliteDriver,
    EngineKind.MYSQL: MySQLDriver,
    EngineKind.POSTGRESQL: PostgresDriver,
}


def create_driver(descriptor: ConnectionDescriptor) -> Driver:
    """Return an unconnected driver for the descriptor's engine."""

    return _DRIVERS[EngineKind(descriptor.kind)](descriptor)
