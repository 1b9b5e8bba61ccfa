"""Tests for the operation gate."""

from __future__ import annotations

import pytest

from dbdesk.errors import OperationDenied
from dbdesk.gate import OperationPolicy, StatementCategory, check, classify, enforce


@pytest.mark.parametrize(
    ("sql", "category"),
    [
        ("UPDATE t SET a = 1", StatementCategory.UPDATE),
        ("  update t set a = 1", StatementCategory.UPDATE),
        ("DELETE FROM t", StatementCategory.DELETE),
        ("ALTER TABLE t ADD c int", StatementCategory.STRUCTURAL),
        ("drop table t", StatementCategory.STRUCTURAL),
        ("TRUNCATE t", StatementCategory.STRUCTURAL),
        ("SELECT * FROM t", StatementCategory.UNRESTRICTED),
        ("INSERT INTO t VALUES (1)", StatementCategory.UNRESTRICTED),
        ("CREATE TABLE t (a int)", StatementCategory.UNRESTRICTED),
        ("UPDATED_AT", StatementCategory.UNRESTRICTED),
        ("", StatementCategory.UNRESTRICTED),
    ],
)
def test_classify(sql: str, category: StatementCategory) -> None:
    assert classify(sql) is category


def test_everything_destructive_is_denied_by_default() -> None:
    policy = OperationPolicy()

    assert check("SELECT 1", policy) is None
    assert check("UPDATE t SET a = 1", policy) is not None
    assert check("DELETE FROM t", policy) is not None
    assert check("DROP TABLE t", policy) is not None


def test_rejection_names_the_switch() -> None:
    message = check("truncate t", OperationPolicy())

    assert message is not None
    assert message.startswith("TRUNCATE statements are disabled.")
    assert "allow_structural" in message


def test_switches_are_independent() -> None:
    policy = OperationPolicy(allow_delete=True)

    assert check("DELETE FROM t", policy) is None
    assert check("UPDATE t SET a = 1", policy) is not None
    assert check("ALTER TABLE t ADD c int", policy) is not None


def test_enforce_raises_or_returns_category() -> None:
    with pytest.raises(OperationDenied, match="allow_update"):
        enforce("UPDATE t SET a = 1", OperationPolicy())

    assert enforce("UPDATE t SET a = 1", OperationPolicy(allow_update=True)) is StatementCategory.UPDATE


def test_structural_switch_passes_drop_through() -> None:
    policy = OperationPolicy(allow_structural=True)

    assert check("DROP TABLE t", policy) is None
    assert enforce("DROP TABLE t", policy) is StatementCategory.STRUCTURAL
