# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for backup agent tests.

Provides a recording fake engine and test configuration helpers.
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Tuple

import pytest

from chbackup_agent.address import AddressScheme
from chbackup_agent.config import AgentConfig
from chbackup_agent.exceptions import EngineError


class FakeEngine:
    """
    BackupEngine double that records every call.

    ``failures`` maps an engine method name to the error message it
    raises. ``gate(method)`` makes that method block until released.
    """

    def __init__(self, failures: Dict[str, str] | None = None):
        self.calls: List[Tuple[str, dict]] = []
        self.failures: Dict[str, str] = failures or {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.entered: Dict[str, asyncio.Event] = {}
        self.clean_result = True

    def gate(self, method: str) -> None:
        self.gates[method] = asyncio.Event()
        self.entered[method] = asyncio.Event()

    def called(self) -> List[str]:
        return [method for method, _ in self.calls]

    def kwargs(self, method: str) -> dict:
        for name, kwargs in self.calls:
            if name == method:
                return kwargs
        raise AssertionError(f"{method} was never called")

    async def _record(self, method: str, out, **kwargs) -> None:
        self.calls.append((method, kwargs))
        if method in self.gates:
            self.entered[method].set()
            await self.gates[method].wait()
        if method in self.failures:
            raise EngineError(self.failures[method])
        if out is not None:
            out.write(f"{method} ok\n")

    async def print_tables(self, config, *, out):
        await self._record("print_tables", out)

    async def create_backup(self, config, *, backup_kind, backup_name, tables, out):
        await self._record(
            "create_backup", out, backup_kind=backup_kind, backup_name=backup_name, tables=tables
        )

    async def freeze(self, config, *, tables, out):
        await self._record("freeze", out, tables=tables)

    async def upload(self, config, *, backup_kind, backup_name, diff_from, out):
        await self._record(
            "upload", out, backup_kind=backup_kind, backup_name=backup_name, diff_from=diff_from
        )

    async def download(self, config, *, backup_kind, backup_name, out):
        await self._record("download", out, backup_kind=backup_kind, backup_name=backup_name)

    async def restore(self, config, *, backup_kind, backup_name, tables, schema_only, data_only, out):
        await self._record(
            "restore",
            out,
            backup_kind=backup_kind,
            backup_name=backup_name,
            tables=tables,
            schema_only=schema_only,
            data_only=data_only,
        )

    async def remove_backup_local(self, config, *, backup_kind, backup_name, out):
        await self._record(
            "remove_backup_local", out, backup_kind=backup_kind, backup_name=backup_name
        )

    async def remove_backup_remote(self, config, *, backup_kind, backup_name, out):
        await self._record(
            "remove_backup_remote", out, backup_kind=backup_kind, backup_name=backup_name
        )

    async def print_local_backups(self, config, *, backup_kind, format, out):
        await self._record("print_local_backups", out, backup_kind=backup_kind, format=format)

    async def print_remote_backups(self, config, *, backup_kind, format, out):
        await self._record("print_remote_backups", out, backup_kind=backup_kind, format=format)

    async def clean(self, config, *, out):
        await self._record("clean", out)

    async def is_clean(self, config):
        await self._record("is_clean", None)
        return self.clean_result

    async def print_default_config(self, *, out):
        await self._record("print_default_config", out)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def engine() -> FakeEngine:
    """A fresh recording engine."""
    return FakeEngine()


@pytest.fixture
def test_config(temp_dir: Path) -> AgentConfig:
    """Create a test configuration with name-only addressing."""
    return AgentConfig(
        config_path=temp_dir / "config.yml",
        tables="default.*",
        listen_host="127.0.0.1",
        shard_port=8123,
        addressing=AddressScheme.NAME,
        lock_dir=temp_dir / "locks",
    )


@pytest.fixture
def kind_config(test_config: AgentConfig) -> AgentConfig:
    """Create a test configuration with kind + name addressing."""
    return test_config.with_updates(addressing=AddressScheme.KIND)


def write_config(path: Path, text: str) -> Path:
    """Write a YAML config file and return its path."""
    path.write_text(text, encoding="utf-8")
    return path
