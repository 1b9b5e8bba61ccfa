"""Derive read-only row-counting variants of UPDATE/DELETE statements.

The rewrite is keyword-boundary based, not a parser. It assumes a single,
well-formed, single-table statement. A ``SET``/``WHERE``/``FROM`` keyword that
appears inside a string literal or a quoted identifier can shift the
boundary and produce a wrong count query.
"""

from __future__ import annotations

import re
from enum import Enum


class TransformMode(str, Enum):
    """Shape of the derived statement."""

    COUNT = "count"
    PREVIEW = "preview"


_UPDATE_PREFIX = re.compile(r"UPDATE\s", re.IGNORECASE)
_DELETE_PREFIX = re.compile(r"DELETE\s", re.IGNORECASE)
_SET = re.compile(r"\sSET\s", re.IGNORECASE)
_WHERE = re.compile(r"\sWHERE\s", re.IGNORECASE)
_FROM = re.compile(r"\sFROM\s", re.IGNORECASE)

_PROJECTIONS = {
    TransformMode.COUNT: "SELECT COUNT(*) AS affected_count",
    TransformMode.PREVIEW: "SELECT COUNT(1)",
}


def transform(sql: str, mode: TransformMode | str = TransformMode.COUNT) -> str | None:
    """Return the counting variant of ``sql`` or ``None`` when no preview is possible."""

    statement = sql.strip()
    projection = _PROJECTIONS[TransformMode(mode)]
    if _UPDATE_PREFIX.match(statement):
        return _transform_update(statement, projection)
    if _DELETE_PREFIX.match(statement):
        return _transform_delete(statement, projection)
    return None


def to_count_query(sql: str) -> str | None:
    """``UPDATE t SET ... WHERE c`` -> ``SELECT COUNT(*) AS affected_count FROM t WHERE c``."""

    return transform(sql, TransformMode.COUNT)


def to_preview_query(sql: str) -> str | None:
    """``DELETE FROM t WHERE c`` -> ``SELECT COUNT(1) FROM t WHERE c``."""

    return transform(sql, TransformMode.PREVIEW)


def _transform_update(statement: str, projection: str) -> str | None:
    set_match = _SET.search(statement, len("UPDATE") - 1)
    if not set_match:
        return None
    table = statement[len("UPDATE") : set_match.start()].strip()
    if not table:
        return None
    where_match = _WHERE.search(statement, set_match.end() - 1)
    if where_match:
        where_clause = statement[where_match.start() :].strip()
        return f"{projection} FROM {table} {where_clause}"
    return f"{projection} FROM {table}"


def _transform_delete(statement: str, projection: str) -> str | None:
    from_match = _FROM.search(statement, len("DELETE") - 1)
    if not from_match:
        return None
    from_clause = statement[from_match.start() :].strip()
    return f"{projection} {from_clause}"


__all__ = ["TransformMode", "to_count_query", "to_preview_query", "transform"]
