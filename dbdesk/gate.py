"""Prefix-based allow/deny policy for destructive statements.

This is a guard for a trusted interactive user, not a security boundary.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from .errors import OperationDenied


class StatementCategory(str, Enum):
    """Risk categories recognized by the gate."""

    UPDATE = "update"
    DELETE = "delete"
    STRUCTURAL = "structural"
    UNRESTRICTED = "unrestricted"


class OperationPolicy(BaseModel):
    """Three independent switches; everything is denied until enabled."""

    allow_update: bool = False
    allow_delete: bool = False
    allow_structural: bool = False

    def allows(self, category: StatementCategory) -> bool:
        if category is StatementCategory.UPDATE:
            return self.allow_update
        if category is StatementCategory.DELETE:
            return self.allow_delete
        if category is StatementCategory.STRUCTURAL:
            return self.allow_structural
        return True


_STRUCTURAL_KEYWORDS = frozenset({"ALTER", "DROP", "TRUNCATE"})

_REJECTIONS = {
    "UPDATE": ("allow_update", "to prevent accidental data modification"),
    "DELETE": ("allow_delete", "to prevent accidental data deletion"),
    "ALTER": ("allow_structural", "to prevent accidental changes to table structure"),
    "DROP": ("allow_structural", "to prevent accidentally dropping tables or databases"),
    "TRUNCATE": ("allow_structural", "to prevent accidentally emptying tables"),
}


def leading_keyword(sql: str) -> str:
    parts = sql.strip().split(None, 1)
    return parts[0].upper() if parts else ""


def classify(sql: str) -> StatementCategory:
    """Categorize a statement by its first keyword."""

    keyword = leading_keyword(sql)
    if keyword == "UPDATE":
        return StatementCategory.UPDATE
    if keyword == "DELETE":
        return StatementCategory.DELETE
    if keyword in _STRUCTURAL_KEYWORDS:
        return StatementCategory.STRUCTURAL
    return StatementCategory.UNRESTRICTED


def check(sql: str, policy: OperationPolicy) -> str | None:
    """Return a rejection message for denied statements, ``None`` when allowed."""

    category = classify(sql)
    if policy.allows(category):
        return None
    keyword = leading_keyword(sql)
    switch, reason = _REJECTIONS[keyword]
    return (
        f"{keyword} statements are disabled. Enable '{switch}' and retry; "
        f"this setting exists {reason}."
    )


def enforce(sql: str, policy: OperationPolicy) -> StatementCategory:
    """Raise :class:`OperationDenied` for denied statements; otherwise return the category."""

    message = check(sql, policy)
    if message:
        raise OperationDenied(message)
    return classify(sql)


__all__ = [
    "OperationPolicy",
    "StatementCategory",
    "check",
    "classify",
    "enforce",
    "leading_keyword",
]
