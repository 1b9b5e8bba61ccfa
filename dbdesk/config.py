"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .gate import OperationPolicy
from .models import ConnectionDescriptor, EngineKind

CONFIG_FILE = Path.home() / ".config" / "dbdesk" / "config.toml"


class ConnectionProfileConfig(BaseModel):
    """Connection profile stored in config.toml. Never holds a secret."""

    name: str
    engine: EngineKind = EngineKind.POSTGRESQL
    id: str | None = None
    host: str | None = None
    port: int | None = None
    user: str | None = None
    database: str | None = None
    path: str | None = None
    credential_ref: str | None = None

    def to_descriptor(self) -> ConnectionDescriptor:
        """Build the runtime descriptor; the id stays stable across restarts."""

        return ConnectionDescriptor(
            kind=self.engine,
            name=self.name,
            host=self.host,
            port=self.port,
            username=self.user,
            database=self.database,
            path=self.path,
            credential_ref=self.credential_ref,
            id=self.id or self.name,
        )


class HistoryConfig(BaseModel):
    """Retention settings for the execution history."""

    max_select_entries: int = 500
    max_other_entries: int = 500
    path: Path | None = None
    persist_failures: bool = False


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    profiles: list[ConnectionProfileConfig] = Field(default_factory=list)
    active_profile: str | None = None
    policy: OperationPolicy = Field(default_factory=OperationPolicy)
    staleness_seconds: float = 300.0
    history: HistoryConfig = Field(default_factory=HistoryConfig)

    def with_active_profile(self, name: str) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": name})

    def with_policy(self, **updates: bool) -> AppConfig:
        """Return a copy with operation switches changed."""

        policy = self.policy.model_copy(update=updates)
        return self.model_copy(update={"policy": policy})


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file(path or CONFIG_FILE)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    try:
        return AppConfig(**data)
    except ValidationError:
        return AppConfig()


def save_config(config: AppConfig, path: Path | None = None) -> None:
    """Persist configuration to disk."""

    target = path or CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [f"staleness_seconds = {config.staleness_seconds}"]
    if config.active_profile:
        lines.append(f"active_profile = {_toml_string(config.active_profile)}")
    lines.append("")
    lines.append("[policy]")
    lines.append(f"allow_update = {str(config.policy.allow_update).lower()}")
    lines.append(f"allow_delete = {str(config.policy.allow_delete).lower()}")
    lines.append(f"allow_structural = {str(config.policy.allow_structural).lower()}")
    lines.append("")
    lines.append("[history]")
    lines.append(f"max_select_entries = {config.history.max_select_entries}")
    lines.append(f"max_other_entries = {config.history.max_other_entries}")
    lines.append(f"persist_failures = {str(config.history.persist_failures).lower()}")
    if config.history.path is not None:
        lines.append(f"path = {_toml_string(str(config.history.path))}")
    if config.profiles:
        lines.append("")
        for profile in config.profiles:
            lines.append("[[profiles]]")
            lines.append(f"name = {_toml_string(profile.name)}")
            lines.append(f'engine = "{profile.engine.value}"')
            for key in ("id", "host", "user", "database", "path", "credential_ref"):
                value = getattr(profile, key)
                if value:
                    lines.append(f"{key} = {_toml_string(value)}")
            if profile.port is not None:
                lines.append(f"port = {profile.port}")
            lines.append("")
    target.write_text("\n".join(lines) + "\n")


def _toml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if not isinstance(raw, dict):
        return data
    active_profile = raw.get("active_profile")
    if isinstance(active_profile, str):
        data["active_profile"] = active_profile
    staleness = raw.get("staleness_seconds")
    if isinstance(staleness, (int, float)) and not isinstance(staleness, bool) and staleness > 0:
        data["staleness_seconds"] = float(staleness)
    policy = raw.get("policy")
    if isinstance(policy, dict):
        data["policy"] = {
            key: value
            for key, value in policy.items()
            if key in OperationPolicy.model_fields and isinstance(value, bool)
        }
    history = raw.get("history")
    if isinstance(history, dict):
        parsed_history: dict[str, object] = {}
        for key in ("max_select_entries", "max_other_entries"):
            value = history.get(key)
            if isinstance(value, int) and not isinstance(value, bool) and value > 0:
                parsed_history[key] = value
        persist = history.get("persist_failures")
        if isinstance(persist, bool):
            parsed_history["persist_failures"] = persist
        history_path = history.get("path")
        if isinstance(history_path, str) and history_path:
            parsed_history["path"] = Path(history_path).expanduser()
        data["history"] = parsed_history
    profiles = raw.get("profiles")
    if isinstance(profiles, list):
        parsed_profiles: list[dict[str, object]] = []
        for profile in profiles:
            if not isinstance(profile, dict):
                continue
            parsed: dict[str, object] = {}
            for key in ("name", "id", "host", "user", "database", "path", "credential_ref"):
                value = profile.get(key)
                if isinstance(value, str):
                    parsed[key] = value
            engine = profile.get("engine")
            if isinstance(engine, str) and engine in {kind.value for kind in EngineKind}:
                parsed["engine"] = engine
            port = profile.get("port")
            if isinstance(port, int) and not isinstance(port, bool):
                parsed["port"] = port
            if parsed.get("name"):
                parsed_profiles.append(parsed)
        data["profiles"] = parsed_profiles
    return data


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "ConnectionProfileConfig",
    "HistoryConfig",
    "load_config",
    "save_config",
]
