"""Error taxonomy shared by drivers, sessions and the executor."""

from __future__ import annotations


class DatabaseError(RuntimeError):
    """Base error for the database access layer."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail


class ConnectionFailed(DatabaseError):
    """Raised when a transport cannot be established (network, auth, configuration)."""


class QueryFailed(DatabaseError):
    """Raised when the engine rejects a statement; the engine message is kept verbatim."""


class NotConnected(DatabaseError):
    """Raised when a driver is asked to operate without a transport."""

    def __init__(self, detail: str = "Not connected") -> None:
        super().__init__(detail)


class DefinitionUnavailable(DatabaseError):
    """Raised when an engine cannot produce structural definition text for a table."""

    def __init__(self, table: str, detail: str | None = None) -> None:
        super().__init__(detail or f"No definition available for table '{table}'")
        self.table = table


class OperationDenied(DatabaseError):
    """Raised when the operation gate rejects a statement before execution."""


__all__ = [
    "ConnectionFailed",
    "DatabaseError",
    "DefinitionUnavailable",
    "NotConnected",
    "OperationDenied",
    "QueryFailed",
]
