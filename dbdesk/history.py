"""Execution history: one immutable record per executed statement."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .config import HistoryConfig

LOG = logging.getLogger(__name__)

_PREVIEW_CHARS = 100


class ExecutionRecord(BaseModel):
    """Outcome of a single statement execution."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    connection_id: str | None = None
    connection_name: str
    engine_label: str
    sql: str
    duration: float
    row_count: int | None = None
    success: bool = True
    error: str | None = None

    @property
    def is_read(self) -> bool:
        head = self.sql.lstrip().upper()
        return head.startswith("SELECT") or head.startswith("EXPLAIN")


_RECORDS = TypeAdapter(list[ExecutionRecord])


@runtime_checkable
class HistoryRecorder(Protocol):
    """Append-only sink for execution records; must tolerate concurrent sessions."""

    def record(
        self,
        *,
        connection_id: str | None,
        connection_name: str,
        engine_label: str,
        sql: str,
        duration: float,
        row_count: int | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> object: ...


class SQLHistory:
    """In-memory, newest-first execution log with optional JSON persistence.

    Read statements (SELECT/EXPLAIN) and everything else are capped
    separately so a burst of queries cannot evict the record of a write.
    """

    def __init__(
        self,
        *,
        path: Path | None = None,
        max_select_entries: int = 500,
        max_other_entries: int = 500,
        persist_failures: bool = False,
    ) -> None:
        self._path = path
        self._max_select = max_select_entries
        self._max_other = max_other_entries
        self._persist_failures = persist_failures
        self._entries: list[ExecutionRecord] = []
        self._lock = threading.Lock()
        if path is not None:
            self._load(path)

    @classmethod
    def from_config(cls, config: HistoryConfig) -> SQLHistory:
        return cls(
            path=config.path,
            max_select_entries=config.max_select_entries,
            max_other_entries=config.max_other_entries,
            persist_failures=config.persist_failures,
        )

    @property
    def entries(self) -> tuple[ExecutionRecord, ...]:
        with self._lock:
            return tuple(self._entries)

    def record(
        self,
        *,
        connection_id: str | None,
        connection_name: str,
        engine_label: str,
        sql: str,
        duration: float,
        row_count: int | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> ExecutionRecord:
        entry = ExecutionRecord(
            connection_id=connection_id,
            connection_name=connection_name,
            engine_label=engine_label,
            sql=sql,
            duration=duration,
            row_count=row_count,
            success=success,
            error=error,
        )
        self._log(entry)
        with self._lock:
            self._entries.insert(0, entry)
            self._trim()
            self._save(self._entries)
        return entry

    def for_connection(self, connection_id: str | None) -> list[ExecutionRecord]:
        if connection_id is None:
            return list(self.entries)
        return [entry for entry in self.entries if entry.connection_id == connection_id]

    def search(self, text: str) -> list[ExecutionRecord]:
        if not text:
            return list(self.entries)
        needle = text.lower()
        return [
            entry
            for entry in self.entries
            if needle in entry.sql.lower() or needle in entry.connection_name.lower()
        ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._save(self._entries)

    def export_text(self) -> str:
        entries = self.entries
        lines = [
            "SQL execution history",
            f"Exported at: {datetime.now(tz=timezone.utc).isoformat(timespec='seconds')}",
            f"Total records: {len(entries)}",
            "=" * 80,
            "",
        ]
        for entry in entries:
            header = (
                f"[{entry.timestamp.strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]}] "
                f"[{entry.engine_label}] [{entry.connection_name}] "
                f"{'OK' if entry.success else 'FAILED'} ({entry.duration:.3f}s)"
            )
            if entry.row_count is not None:
                header += f" {entry.row_count} rows"
            lines.append(header)
            lines.append(entry.sql)
            if entry.error:
                lines.append(f"Error: {entry.error}")
            lines.append("")
        return "\n".join(lines)

    def _trim(self) -> None:
        reads = others = 0
        kept: list[ExecutionRecord] = []
        for entry in self._entries:
            if entry.is_read:
                reads += 1
                if reads > self._max_select:
                    continue
            else:
                others += 1
                if others > self._max_other:
                    continue
            kept.append(entry)
        self._entries = kept

    def _log(self, entry: ExecutionRecord) -> None:
        preview = entry.sql if len(entry.sql) <= _PREVIEW_CHARS else entry.sql[:_PREVIEW_CHARS] + "..."
        extra = {
            "connection": entry.connection_name,
            "engine": entry.engine_label,
            "duration": round(entry.duration, 3),
            "rows": entry.row_count,
        }
        if entry.success:
            LOG.info("SQL ok: %s", preview, extra=extra)
        else:
            LOG.warning("SQL failed: %s (%s)", preview, entry.error, extra=extra)

    def _load(self, path: Path) -> None:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return
        except OSError:
            LOG.exception("Failed to read history file", extra={"path": str(path)})
            return
        try:
            loaded = _RECORDS.validate_json(raw)
        except ValidationError:
            LOG.exception("Ignoring corrupt history file", extra={"path": str(path)})
            return
        with self._lock:
            self._entries = sorted(loaded, key=lambda entry: entry.timestamp, reverse=True)
            self._trim()
        LOG.debug("Loaded history", extra={"path": str(path), "count": len(self._entries)})

    def _save(self, entries: list[ExecutionRecord]) -> None:
        # Caller holds _lock.
        if self._path is None:
            return
        if not self._persist_failures:
            entries = [entry for entry in entries if entry.success]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(_RECORDS.dump_json(entries, indent=2))
        except OSError:
            LOG.exception("Failed to save history file", extra={"path": str(self._path)})


__all__ = ["ExecutionRecord", "HistoryRecorder", "SQLHistory"]
