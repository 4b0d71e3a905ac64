# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Configuration Tests.

Covers YAML loading, validation, environment overrides and shard ports.
"""

from pathlib import Path

import pytest

from chbackup_agent.address import AddressScheme
from chbackup_agent.config import DEFAULT_CONFIG_PATH, AgentConfig, load_config
from chbackup_agent.env import (
    apply_env_overrides,
    load_config_from_env,
    resolve_config_path,
)
from chbackup_agent.exceptions import ConfigLoadError

from conftest import write_config


SHARD_CONFIG = """
general:
  tables: "analytics.*"
clickhouse:
  data_path: /data/clickhouse
api:
  listen_host: 127.0.0.1
  shard_port: 7171
  addressing: kind
  engine_binary: /usr/local/bin/clickhouse-backup
"""


def test_load_config_reads_consumed_keys(temp_dir: Path):
    path = write_config(temp_dir / "config.yml", SHARD_CONFIG)

    config = load_config(path)

    assert config.config_path == path
    assert config.tables == "analytics.*"
    assert config.listen_address() == ("127.0.0.1", 7171)
    assert config.addressing is AddressScheme.KIND
    assert config.engine_binary == "/usr/local/bin/clickhouse-backup"
    assert config.raw["clickhouse"]["data_path"] == "/data/clickhouse"


def test_load_config_defaults(temp_dir: Path):
    config = load_config(write_config(temp_dir / "config.yml", ""))

    assert config.listen_address() == ("0.0.0.0", 8123)
    assert config.addressing is AddressScheme.NAME
    assert config.tables == ""


def test_missing_config_file(temp_dir: Path):
    with pytest.raises(ConfigLoadError) as exc_info:
        load_config(temp_dir / "absent.yml")

    assert "not found" in exc_info.value.message


def test_invalid_yaml(temp_dir: Path):
    path = write_config(temp_dir / "config.yml", "api: [unclosed\n")

    with pytest.raises(ConfigLoadError):
        load_config(path)


def test_non_mapping_document(temp_dir: Path):
    path = write_config(temp_dir / "config.yml", "- just\n- a list\n")

    with pytest.raises(ConfigLoadError):
        load_config(path)


@pytest.mark.parametrize("port", ["0", "70000"])
def test_out_of_range_port_rejected(temp_dir: Path, port: str):
    path = write_config(temp_dir / "config.yml", f"api:\n  shard_port: {port}\n")

    with pytest.raises(ConfigLoadError) as exc_info:
        load_config(path)

    assert exc_info.value.details["errors"]


def test_unknown_addressing_rejected(temp_dir: Path):
    path = write_config(temp_dir / "config.yml", "api:\n  addressing: shard\n")

    with pytest.raises(ConfigLoadError):
        load_config(path)


def test_two_shards_listen_on_distinct_ports(temp_dir: Path):
    first = load_config(write_config(temp_dir / "shard1.yml", "api:\n  shard_port: 7171\n"))
    second = load_config(write_config(temp_dir / "shard2.yml", "api:\n  shard_port: 7172\n"))

    assert first.listen_address() != second.listen_address()


def test_with_updates_validates():
    config = AgentConfig()

    with pytest.raises(ConfigLoadError):
        config.with_updates(shard_port=-1)


# ============================================================================
# Environment
# ============================================================================

def test_resolve_config_path_precedence(monkeypatch):
    monkeypatch.delenv("CLICKHOUSE_BACKUP_CONFIG", raising=False)
    assert resolve_config_path() == DEFAULT_CONFIG_PATH

    monkeypatch.setenv("CLICKHOUSE_BACKUP_CONFIG", "/srv/backup.yml")
    assert resolve_config_path() == Path("/srv/backup.yml")
    assert resolve_config_path("/tmp/explicit.yml") == Path("/tmp/explicit.yml")


def test_env_overrides_shard_port(monkeypatch, temp_dir: Path):
    path = write_config(temp_dir / "config.yml", SHARD_CONFIG)
    monkeypatch.setenv("CLICKHOUSE_BACKUP_SHARD_PORT", "9001")
    monkeypatch.setenv("CLICKHOUSE_BACKUP_ADDRESSING", "name")

    config = load_config_from_env(path)

    assert config.shard_port == 9001
    assert config.addressing is AddressScheme.NAME
    assert config.tables == "analytics.*"


@pytest.mark.parametrize(
    "name,value",
    [
        ("CLICKHOUSE_BACKUP_SHARD_PORT", "http"),
        ("CLICKHOUSE_BACKUP_SHARD_PORT", "99999"),
        ("CLICKHOUSE_BACKUP_ADDRESSING", "shard"),
    ],
)
def test_invalid_env_overrides(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigLoadError):
        apply_env_overrides(AgentConfig())


def test_no_env_overrides_returns_same_config(monkeypatch):
    monkeypatch.delenv("CLICKHOUSE_BACKUP_SHARD_PORT", raising=False)
    monkeypatch.delenv("CLICKHOUSE_BACKUP_ADDRESSING", raising=False)
    config = AgentConfig()

    assert apply_env_overrides(config) is config


def test_lock_dir_from_config_or_per_shard_default(temp_dir: Path):
    explicit = load_config(
        write_config(temp_dir / "a.yml", f"api:\n  lock_dir: {temp_dir / 'locks'}\n")
    )
    default = load_config(write_config(temp_dir / "b.yml", "api:\n  shard_port: 7171\n"))

    assert explicit.runtime_dir() == temp_dir / "locks"
    assert default.runtime_dir().name == "clickhouse-backup-agent-7171"
    assert default.runtime_dir() != AgentConfig(shard_port=7172).runtime_dir()
