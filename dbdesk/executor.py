"""Self-healing statement execution with a single reconnect-and-retry cycle."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from .drivers import Driver
from .errors import DefinitionUnavailable, NotConnected, OperationDenied
from .gate import OperationPolicy, enforce
from .history import HistoryRecorder
from .models import ResultRow, data_rows
from .transform import TransformMode, transform

if TYPE_CHECKING:
    from .session import ConnectionSession

LOG = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[Driver], Awaitable[T]]

_CONNECTION_LOSS_SIGNATURES = ("closed", "connection", "eof", "reset", "broken pipe", "lost")

_NEVER_RETRIED = (NotConnected, DefinitionUnavailable, OperationDenied)


def is_connection_loss(exc: BaseException) -> bool:
    """Return True when ``exc`` (or anything in its cause chain) looks like a dropped transport."""

    if isinstance(exc, _NEVER_RETRIED):
        return False
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, (ConnectionError, EOFError)):
            return True
        message = str(current).lower()
        if any(signature in message for signature in _CONNECTION_LOSS_SIGNATURES):
            return True
        current = current.__cause__
    return False


class ResilientExecutor:
    """Runs driver operations against a session, healing exactly one connection loss.

    Each call first makes sure the session has a usable transport. When the
    operation fails with a connection-loss error the session is reset,
    reconnected and the operation is retried once; a second failure (or any
    other kind of error) propagates unchanged.
    """

    def __init__(
        self,
        session: ConnectionSession,
        *,
        history: HistoryRecorder | None = None,
        policy: OperationPolicy | None = None,
    ) -> None:
        self._session = session
        self._history = history
        self._policy = policy

    @property
    def session(self) -> ConnectionSession:
        return self._session

    @property
    def policy(self) -> OperationPolicy | None:
        return self._policy

    async def run(self, operation: Operation[T]) -> T:
        """Invoke ``operation(driver)`` with connect-if-absent and retry-once semantics."""

        async with self._session.lock:
            await self._session.ensure_connected()
            try:
                result = await operation(self._session.driver)
            except Exception as exc:
                if not is_connection_loss(exc):
                    raise
                LOG.warning(
                    "Connection lost, reconnecting and retrying once",
                    extra={"connection": self._session.descriptor.display_name, "error": str(exc)},
                )
                await self._session.reset()
                await self._session.connect()
                result = await operation(self._session.driver)
            self._session.touch()
            return result

    async def call(self, method: str, *args: Any) -> Any:
        """Run a named driver method under :meth:`run`."""

        return await self.run(lambda driver: getattr(driver, method)(*args))

    async def use_database(self, name: str) -> None:
        async with self._session.lock:
            await self._session.use_database(name)

    async def execute(self, sql: str) -> list[ResultRow]:
        """Execute a top-level statement and report it to the history collaborator.

        Raises:
            OperationDenied: the configured policy rejects the statement; it is
                never sent to the engine and nothing is recorded.
        """

        if self._policy is not None:
            enforce(sql, self._policy)
        started = time.perf_counter()
        try:
            rows = await self.run(lambda driver: driver.execute(sql))
        except Exception as exc:
            await self._record(sql, time.perf_counter() - started, success=False, error=str(exc))
            raise
        await self._record(sql, time.perf_counter() - started, row_count=len(data_rows(rows)))
        return rows

    async def count_affected(
        self, sql: str, mode: TransformMode | str = TransformMode.COUNT
    ) -> int | None:
        """Count rows an UPDATE/DELETE would touch; ``None`` when no preview is available."""

        query = transform(sql, mode)
        if query is None:
            return None
        rows = data_rows(await self.execute(query))
        if not rows:
            return 0
        value = next(iter(rows[0].values()), None)
        return int(value) if value is not None else 0

    async def _record(
        self,
        sql: str,
        duration: float,
        *,
        row_count: int | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> None:
        if self._history is None:
            return
        descriptor = self._session.descriptor
        try:
            await asyncio.to_thread(
                self._history.record,
                connection_id=descriptor.id,
                connection_name=descriptor.display_name,
                engine_label=descriptor.kind.label,
                sql=sql,
                duration=duration,
                row_count=row_count,
                success=success,
                error=error,
            )
        except Exception:
            LOG.exception("Failed to record statement history", extra={"connection": descriptor.display_name})


__all__ = ["ResilientExecutor", "is_connection_loss"]
