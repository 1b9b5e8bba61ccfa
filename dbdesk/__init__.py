"""Database access layer for a desktop SQL client."""

from __future__ import annotations

__version__ = "0.1.0"

from .config import AppConfig, load_config, save_config
from .drivers import create_driver
from .errors import (
    ConnectionFailed,
    DatabaseError,
    DefinitionUnavailable,
    NotConnected,
    OperationDenied,
    QueryFailed,
)
from .executor import ResilientExecutor, is_connection_loss
from .gate import OperationPolicy, StatementCategory, check, classify, enforce
from .history import ExecutionRecord, SQLHistory
from .introspect import SchemaIntrospector
from .models import (
    COLUMNS_KEY,
    ColumnInfo,
    ConnectionDescriptor,
    EngineKind,
    ResultRow,
    TableInfo,
)
from .secrets import InMemorySecretStore, SecretStore
from .session import ConnectionSession, SessionManager
from .transform import TransformMode, to_count_query, to_preview_query, transform

__all__ = [
    "AppConfig",
    "COLUMNS_KEY",
    "ColumnInfo",
    "ConnectionDescriptor",
    "ConnectionFailed",
    "ConnectionSession",
    "DatabaseError",
    "DefinitionUnavailable",
    "EngineKind",
    "ExecutionRecord",
    "InMemorySecretStore",
    "NotConnected",
    "OperationDenied",
    "OperationPolicy",
    "QueryFailed",
    "ResilientExecutor",
    "ResultRow",
    "SQLHistory",
    "SchemaIntrospector",
    "SecretStore",
    "SessionManager",
    "StatementCategory",
    "TableInfo",
    "TransformMode",
    "check",
    "classify",
    "create_driver",
    "enforce",
    "is_connection_loss",
    "load_config",
    "save_config",
    "to_count_query",
    "to_preview_query",
    "transform",
    "__version__",
]
