# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

These helpers resolve which config file to read and apply the small set
of environment overrides the agent honours on top of it.
"""

from __future__ import annotations

import os
from pathlib import Path

from chbackup_agent.address import AddressScheme
from chbackup_agent.config import DEFAULT_CONFIG_PATH, AgentConfig, load_config
from chbackup_agent.errors import explain_invalid_addressing_env, explain_invalid_port_env
from chbackup_agent.exceptions import ConfigLoadError

CONFIG_ENV = "CLICKHOUSE_BACKUP_CONFIG"
SHARD_PORT_ENV = "CLICKHOUSE_BACKUP_SHARD_PORT"
ADDRESSING_ENV = "CLICKHOUSE_BACKUP_ADDRESSING"


def _parse_port(value: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigLoadError(explain_invalid_port_env(value)) from exc
    if not 1 <= port <= 65535:
        raise ConfigLoadError(explain_invalid_port_env(value))
    return port


def _parse_addressing(value: str) -> AddressScheme:
    try:
        return AddressScheme(value.lower())
    except ValueError as exc:
        raise ConfigLoadError(explain_invalid_addressing_env(value)) from exc


def resolve_config_path(explicit: str | Path | None = None) -> Path:
    """
    Pick the config file: explicit flag, then CLICKHOUSE_BACKUP_CONFIG,
    then the fixed system path.
    """

    if explicit:
        return Path(explicit)
    from_env = os.getenv(CONFIG_ENV)
    if from_env:
        return Path(from_env)
    return DEFAULT_CONFIG_PATH


def apply_env_overrides(config: AgentConfig) -> AgentConfig:
    """
    Apply CLICKHOUSE_BACKUP_SHARD_PORT and CLICKHOUSE_BACKUP_ADDRESSING.
    """

    updates = {}

    port = os.getenv(SHARD_PORT_ENV)
    if port:
        updates["shard_port"] = _parse_port(port)

    addressing = os.getenv(ADDRESSING_ENV)
    if addressing:
        updates["addressing"] = _parse_addressing(addressing)

    if not updates:
        return config
    return config.with_updates(**updates)


def load_config_from_env(explicit: str | Path | None = None) -> AgentConfig:
    """
    Resolve the config path, load it, and apply environment overrides.

    Raises:
        ConfigLoadError: The file cannot be loaded or an override is invalid
    """

    return apply_env_overrides(load_config(resolve_config_path(explicit)))
