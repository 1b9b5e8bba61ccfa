"""Connection sessions: transport lifecycle, staleness detection and reconnects."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable

from .config import AppConfig
from .drivers import Driver, create_driver
from .errors import ConnectionFailed, DatabaseError
from .executor import ResilientExecutor
from .models import ConnectionDescriptor, EngineKind
from .secrets import SecretStore

if TYPE_CHECKING:
    from .history import HistoryRecorder

LOG = logging.getLogger(__name__)

# Idle connections are silently dropped by servers and NAT boxes; probe after this.
STALENESS_THRESHOLD = 300.0

DriverFactory = Callable[[ConnectionDescriptor], Driver]


class ConnectionSession:
    """One logical open connection owning exactly one driver transport.

    The session never reconnects in the background. Reconnection happens
    lazily in :meth:`ensure_connected`, which the executor calls before every
    operation.
    """

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        driver: Driver | None = None,
        *,
        secrets: SecretStore | None = None,
        staleness_threshold: float = STALENESS_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._descriptor = descriptor
        self._driver = driver or create_driver(descriptor)
        self._secrets = secrets
        self._staleness_threshold = staleness_threshold
        self._clock = clock
        self._last_activity = clock()
        self._current_database: str | None = None
        self.lock = asyncio.Lock()

    @property
    def descriptor(self) -> ConnectionDescriptor:
        return self._descriptor

    @property
    def driver(self) -> Driver:
        return self._driver

    @property
    def is_connected(self) -> bool:
        return self._driver.connected and not self._driver.closed

    @property
    def last_activity(self) -> float:
        return self._last_activity

    @property
    def idle_seconds(self) -> float:
        return self._clock() - self._last_activity

    @property
    def current_database(self) -> str | None:
        """Database selected after connecting (``None`` until :meth:`use_database`)."""

        return self._current_database

    @property
    def active_database(self) -> str | None:
        """Selected database, falling back to the descriptor's configured one."""

        if self._current_database:
            return self._current_database
        # A PostgreSQL descriptor names the catalog; introspection scopes by schema.
        if self._descriptor.kind is EngineKind.POSTGRESQL:
            return None
        return self._descriptor.database

    def touch(self) -> None:
        """Record activity on the transport."""

        self._last_activity = self._clock()

    async def connect(self) -> None:
        """Validate configuration, resolve the credential and open the transport."""

        self._descriptor.validate()
        if self._driver.connected:
            await self._driver.reset()
        credential = self._resolve_credential()
        LOG.info(
            "Connecting",
            extra={"connection": self._descriptor.display_name, "engine": self._driver.label},
        )
        try:
            await self._driver.connect(credential)
        except DatabaseError:
            raise
        except Exception as exc:
            raise ConnectionFailed(str(exc)) from exc
        self.touch()
        if self._current_database and self._current_database != self._descriptor.database:
            await self._apply_database(self._current_database)

    async def disconnect(self) -> None:
        """Release the transport; safe to call repeatedly."""

        if not self._driver.connected:
            return
        await self._driver.disconnect()
        LOG.info("Disconnected", extra={"connection": self._descriptor.display_name})

    async def reset(self) -> None:
        """Forget the current transport without surfacing close errors."""

        await self._driver.reset()

    async def use_database(self, name: str) -> None:
        """Switch the active database.

        A failed switch is logged and the name is still recorded, so callers
        can qualify later queries with an explicit schema prefix.
        """

        if not name:
            return
        await self.ensure_connected()
        await self._apply_database(name)
        self._current_database = name

    async def ensure_connected(self) -> None:
        """Guarantee a usable transport before the next operation."""

        if not self._driver.connected:
            LOG.info("No transport, connecting", extra={"connection": self._descriptor.display_name})
            await self.connect()
            return

        if self._driver.closed:
            LOG.info("Transport closed, reconnecting", extra={"connection": self._descriptor.display_name})
            await self.reset()
            await self.connect()
            return

        idle = self.idle_seconds
        if idle > self._staleness_threshold:
            LOG.info(
                "Connection idle, verifying",
                extra={"connection": self._descriptor.display_name, "idle_seconds": int(idle)},
            )
            try:
                await self._driver.ping()
            except Exception as exc:
                LOG.warning(
                    "Liveness probe failed, reconnecting",
                    extra={"connection": self._descriptor.display_name, "error": str(exc)},
                )
                await self.reset()
                await self.connect()
            else:
                self.touch()

    async def _apply_database(self, name: str) -> None:
        try:
            await self._driver.switch_database(name)
        except DatabaseError as exc:
            LOG.warning(
                "Failed to switch database; queries must use qualified names",
                extra={"connection": self._descriptor.display_name, "database": name, "error": str(exc)},
            )
        else:
            LOG.info(
                "Switched database",
                extra={"connection": self._descriptor.display_name, "database": name},
            )

    def _resolve_credential(self) -> str:
        if self._descriptor.kind.is_file_based or self._secrets is None:
            return ""
        try:
            secret = self._secrets.resolve_credential(self._descriptor.secret_key)
        except Exception as exc:
            raise ConnectionFailed(f"Failed to resolve credential: {exc}") from exc
        return secret or ""

    async def __aenter__(self) -> ConnectionSession:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()


class SessionManager:
    """Registry of independent sessions, one per connection identifier."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        secrets: SecretStore | None = None,
        history: HistoryRecorder | None = None,
        driver_factory: DriverFactory = create_driver,
    ) -> None:
        self._config = config or AppConfig()
        self._secrets = secrets
        self._history = history
        self._driver_factory = driver_factory
        self._profiles = tuple(profile.to_descriptor() for profile in self._config.profiles)
        self._sessions: dict[str, ConnectionSession] = {}

    @property
    def profiles(self) -> tuple[ConnectionDescriptor, ...]:
        """Descriptors built from the configured profiles."""

        return self._profiles

    @property
    def sessions(self) -> tuple[ConnectionSession, ...]:
        return tuple(self._sessions.values())

    def descriptor_for(self, name: str) -> ConnectionDescriptor:
        for profile in self._profiles:
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' not found.")

    def get(self, connection_id: str) -> ConnectionSession | None:
        return self._sessions.get(connection_id)

    async def open(self, descriptor: ConnectionDescriptor) -> ConnectionSession:
        """Return the open session for ``descriptor``, connecting a new one if needed."""

        session = self._sessions.get(descriptor.id)
        if session is not None:
            return session
        session = ConnectionSession(
            descriptor,
            self._driver_factory(descriptor),
            secrets=self._secrets,
            staleness_threshold=self._config.staleness_seconds,
        )
        await session.connect()
        self._sessions[descriptor.id] = session
        return session

    async def open_profile(self, name: str) -> ConnectionSession:
        return await self.open(self.descriptor_for(name))

    def executor_for(self, session: ConnectionSession) -> ResilientExecutor:
        """Build an executor wired to the configured history and operation policy."""

        return ResilientExecutor(session, history=self._history, policy=self._config.policy)

    async def close(self, connection_id: str) -> None:
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            await session.disconnect()

    async def close_all(self) -> None:
        for connection_id in tuple(self._sessions):
            await self.close(connection_id)


__all__ = ["ConnectionSession", "STALENESS_THRESHOLD", "SessionManager"]
