# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Agent Configuration - Immutable configuration data structures.

The agent reads only the handful of keys it consumes from the backup
engine's YAML file. The rest of the document is kept opaque in ``raw``
for the engine.
"""

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from chbackup_agent.address import AddressScheme
from chbackup_agent.errors import explain_missing_config_file
from chbackup_agent.exceptions import ConfigLoadError

DEFAULT_CONFIG_PATH = Path("/etc/clickhouse-backup/config.yml")
DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_SHARD_PORT = 8123
DEFAULT_ENGINE_BINARY = "clickhouse-backup"
DEFAULT_LOCK_ROOT = Path(tempfile.gettempdir())


@dataclass(frozen=True)
class AgentConfig:
    """
    Immutable configuration for one backup agent instance.

    Each shard of a sharded cluster runs its own agent with its own
    ``shard_port`` so several instances can share a host.
    """

    # Path the configuration was loaded from (forwarded to the engine)
    config_path: Path = DEFAULT_CONFIG_PATH

    # Default table filter, e.g. "db.*" (overridden per call by -t/--tables)
    tables: str = ""

    # HTTP listen host
    listen_host: str = DEFAULT_LISTEN_HOST

    # HTTP listen port, distinct per deployment shard
    shard_port: int = DEFAULT_SHARD_PORT

    # Positional addressing grammar for both transports
    addressing: AddressScheme = AddressScheme.NAME

    # Backup engine executable
    engine_binary: str = DEFAULT_ENGINE_BINARY

    # Directory of per-resource lock files shared by CLI runs and the server
    lock_dir: Path | None = None

    # Whole parsed document, opaque to the agent
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not isinstance(self.shard_port, int) or isinstance(self.shard_port, bool):
            errors.append(f"shard_port must be an integer, got {self.shard_port!r}")
        elif not 1 <= self.shard_port <= 65535:
            errors.append(f"shard_port must be between 1 and 65535, got {self.shard_port}")

        if not isinstance(self.addressing, AddressScheme):
            errors.append(f"Invalid addressing scheme: {self.addressing!r}")

        if not self.engine_binary:
            errors.append("engine_binary must not be empty")

        if not self.listen_host:
            errors.append("listen_host must not be empty")

        if errors:
            raise ConfigLoadError(
                "Configuration validation failed",
                details={"errors": errors, "config_path": str(self.config_path)},
            )

    def listen_address(self) -> Tuple[str, int]:
        """Host and port the HTTP listener binds to."""
        return self.listen_host, self.shard_port

    def runtime_dir(self) -> Path:
        """
        Directory holding the resource lock files.

        Defaults to one directory per shard port under the system temp
        directory.
        """
        if self.lock_dir is not None:
            return Path(self.lock_dir)
        return DEFAULT_LOCK_ROOT / f"clickhouse-backup-agent-{self.shard_port}"

    def with_updates(self, **kwargs) -> "AgentConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return AgentConfig(**current)


def _section(document: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = document.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigLoadError(
            f"Config section '{name}' must be a mapping",
            details={"section": name},
        )
    return section


def _parse_port(value: Any) -> int:
    if value is None or value == "":
        return DEFAULT_SHARD_PORT
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigLoadError(
            f"Invalid api.shard_port value: {value!r}",
            details={"shard_port": value},
        ) from exc


def _parse_addressing(value: Any) -> AddressScheme:
    if not value:
        return AddressScheme.NAME
    try:
        return AddressScheme(str(value).lower())
    except ValueError as exc:
        raise ConfigLoadError(
            f"Invalid api.addressing value: {value!r}. Expected 'name' or 'kind'.",
            details={"addressing": value},
        ) from exc


def load_config(path: Path | str) -> AgentConfig:
    """
    Load the agent configuration from a YAML file.

    Consumed keys:
        - general.tables: default table filter
        - api.listen_host: HTTP listen host (default: 0.0.0.0)
        - api.shard_port: HTTP listen port for this shard (default: 8123)
        - api.addressing: 'name' | 'kind' (default: name)
        - api.engine_binary: backup engine executable (default: clickhouse-backup)
        - api.lock_dir: resource lock directory (default: per shard port under the temp dir)

    Raises:
        ConfigLoadError: File missing, unreadable, not YAML, or invalid values
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigLoadError(
            explain_missing_config_file(str(config_path)),
            details={"config_path": str(config_path)},
        )

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigLoadError(
            f"Failed to read config file: {exc}",
            details={"config_path": str(config_path)},
        ) from exc

    if not isinstance(document, dict):
        raise ConfigLoadError(
            "Config file must contain a YAML mapping",
            details={"config_path": str(config_path)},
        )

    general = _section(document, "general")
    api = _section(document, "api")

    return AgentConfig(
        config_path=config_path,
        tables=str(general.get("tables") or ""),
        listen_host=str(api.get("listen_host") or DEFAULT_LISTEN_HOST),
        shard_port=_parse_port(api.get("shard_port")),
        addressing=_parse_addressing(api.get("addressing")),
        engine_binary=str(api.get("engine_binary") or DEFAULT_ENGINE_BINARY),
        lock_dir=Path(api["lock_dir"]) if api.get("lock_dir") else None,
        raw=document,
    )
