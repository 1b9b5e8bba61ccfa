"""Secret store contract used to resolve credentials just in time."""

from __future__ import annotations

import threading
from typing import Mapping, Protocol, runtime_checkable


@runtime_checkable
class SecretStore(Protocol):
    """Protocol implemented by credential stores keyed by connection identifier."""

    def resolve_credential(self, connection_id: str) -> str | None:
        """Return the stored secret, or ``None`` when nothing is stored."""

    def store_credential(self, connection_id: str, secret: str) -> None:
        """Persist ``secret`` for the connection, replacing any previous value."""

    def remove_credential(self, connection_id: str) -> None:
        """Forget the secret; removing a missing entry is not an error."""


class InMemorySecretStore:
    """Process-local secret store (tests and ephemeral sessions)."""

    def __init__(self, secrets: Mapping[str, str] | None = None) -> None:
        self._secrets: dict[str, str] = dict(secrets or {})
        self._lock = threading.Lock()

    def resolve_credential(self, connection_id: str) -> str | None:
        with self._lock:
            return self._secrets.get(connection_id)

    def store_credential(self, connection_id: str, secret: str) -> None:
        with self._lock:
            if secret:
                self._secrets[connection_id] = secret
            else:
                self._secrets.pop(connection_id, None)

    def remove_credential(self, connection_id: str) -> None:
        with self._lock:
            self._secrets.pop(connection_id, None)

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._secrets


__all__ = ["InMemorySecretStore", "SecretStore"]
