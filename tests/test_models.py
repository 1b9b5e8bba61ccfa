"""Tests for shared models and the secret store."""

from __future__ import annotations

import pytest

from dbdesk.errors import ConnectionFailed
from dbdesk.models import (
    COLUMNS_KEY,
    ColumnInfo,
    ConnectionDescriptor,
    EngineKind,
    column_order,
    data_rows,
)
from dbdesk.secrets import InMemorySecretStore, SecretStore


def test_descriptor_defaults() -> None:
    descriptor = ConnectionDescriptor(kind=EngineKind.POSTGRESQL, host="pg.internal", username="app")

    assert descriptor.effective_port == 5432
    assert descriptor.display_name == "pg.internal"
    assert descriptor.secret_key == descriptor.id
    assert len(descriptor.id) == 32


def test_file_descriptor_display_name_uses_file_name() -> None:
    descriptor = ConnectionDescriptor(kind=EngineKind.SQLITE, path="/data/app.db")

    assert descriptor.display_name == "app.db"
    assert descriptor.effective_port is None


@pytest.mark.parametrize(
    ("descriptor", "message"),
    [
        (ConnectionDescriptor(kind=EngineKind.SQLITE), "file path"),
        (ConnectionDescriptor(kind=EngineKind.MYSQL, username="root"), "host"),
        (ConnectionDescriptor(kind=EngineKind.MYSQL, host="db"), "username"),
    ],
)
def test_validate_reports_missing_fields(descriptor: ConnectionDescriptor, message: str) -> None:
    with pytest.raises(ConnectionFailed, match=message):
        descriptor.validate()


def test_empty_username_is_allowed() -> None:
    ConnectionDescriptor(kind=EngineKind.MYSQL, host="db", username="").validate()


def test_copies_keep_identity() -> None:
    descriptor = ConnectionDescriptor(kind=EngineKind.MYSQL, name="Prod", host="db", username="app")

    renamed = descriptor.renamed("Production").with_database("reports")

    assert renamed.id == descriptor.id
    assert renamed.name == "Production"
    assert renamed.database == "reports"
    assert descriptor.database is None


def test_metadata_row_helpers() -> None:
    rows = [{COLUMNS_KEY: "id,email"}, {"id": "1", "email": None}]

    assert column_order(rows) == ("id", "email")
    assert data_rows(rows) == [{"id": "1", "email": None}]
    assert column_order([]) == ()


def test_column_display_text() -> None:
    assert ColumnInfo("email", "Email address").display_text == "email 'Email address'"
    assert ColumnInfo("id").display_text == "id 'id'"


def test_in_memory_secret_store() -> None:
    store = InMemorySecretStore()
    assert isinstance(store, SecretStore)

    store.store_credential("prod", "s3cret")
    assert store.resolve_credential("prod") == "s3cret"
    assert "prod" in store

    store.store_credential("prod", "")
    assert store.resolve_credential("prod") is None

    store.remove_credential("missing")
