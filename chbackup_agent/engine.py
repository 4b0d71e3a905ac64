# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine Interface - Call surface of the external backup engine.

The agent never snapshots, freezes or transfers data itself. It calls a
BackupEngine, which writes human-readable output to a text stream and
raises EngineError on failure. CommandEngine implements the interface by
running the ``clickhouse-backup`` executable.
"""

import asyncio
import codecs
import io
from pathlib import Path
from typing import List, Protocol, TextIO

import structlog

from chbackup_agent.config import DEFAULT_ENGINE_BINARY, AgentConfig
from chbackup_agent.exceptions import EngineError

logger = structlog.get_logger()

DEFAULT_DATA_PATH = "/var/lib/clickhouse"

# Engine output is copied in chunks; lines may be arbitrarily long
READ_CHUNK_SIZE = 64 * 1024


class BackupEngine(Protocol):
    """Operations the dispatcher may invoke on a backup engine."""

    async def print_tables(self, config: AgentConfig, *, out: TextIO) -> None: ...

    async def create_backup(
        self,
        config: AgentConfig,
        *,
        backup_kind: str,
        backup_name: str,
        tables: str,
        out: TextIO,
    ) -> None: ...

    async def freeze(self, config: AgentConfig, *, tables: str, out: TextIO) -> None: ...

    async def upload(
        self,
        config: AgentConfig,
        *,
        backup_kind: str,
        backup_name: str,
        diff_from: str,
        out: TextIO,
    ) -> None: ...

    async def download(
        self, config: AgentConfig, *, backup_kind: str, backup_name: str, out: TextIO
    ) -> None: ...

    async def restore(
        self,
        config: AgentConfig,
        *,
        backup_kind: str,
        backup_name: str,
        tables: str,
        schema_only: bool,
        data_only: bool,
        out: TextIO,
    ) -> None: ...

    async def remove_backup_local(
        self, config: AgentConfig, *, backup_kind: str, backup_name: str, out: TextIO
    ) -> None: ...

    async def remove_backup_remote(
        self, config: AgentConfig, *, backup_kind: str, backup_name: str, out: TextIO
    ) -> None: ...

    async def print_local_backups(
        self, config: AgentConfig, *, backup_kind: str, format: str, out: TextIO
    ) -> None: ...

    async def print_remote_backups(
        self, config: AgentConfig, *, backup_kind: str, format: str, out: TextIO
    ) -> None: ...

    async def clean(self, config: AgentConfig, *, out: TextIO) -> None: ...

    async def is_clean(self, config: AgentConfig) -> bool: ...

    async def print_default_config(self, *, out: TextIO) -> None: ...


def qualify(backup_kind: str, backup_name: str) -> str:
    """Engine-side name of a backup: ``<kind>.<name>``, or the bare name."""
    if backup_kind and backup_name:
        return f"{backup_kind}.{backup_name}"
    return backup_name


def filter_kind(listing: str, backup_kind: str, format: str = "") -> str:
    """
    Keep only listing lines whose backup belongs to ``backup_kind``.

    ``latest`` and ``penult`` select the last and second-to-last matching
    backup name, mirroring the engine's own list formats.
    """
    prefix = f"{backup_kind}."
    lines = [
        line
        for line in listing.splitlines()
        if line.split() and line.split()[0].startswith(prefix)
    ]

    if format == "latest":
        return f"{lines[-1].split()[0]}\n" if lines else ""
    if format == "penult":
        return f"{lines[-2].split()[0]}\n" if len(lines) > 1 else ""
    return "".join(f"{line}\n" for line in lines)


def _is_empty_dir(path: Path) -> bool:
    if not path.exists():
        return True
    return not any(path.iterdir())


class CommandEngine:
    """
    BackupEngine backed by the ``clickhouse-backup`` executable.

    Standard output is streamed to ``out`` as it arrives. A non-zero exit
    becomes an EngineError carrying the engine's stderr verbatim.
    """

    def __init__(self, binary: str | None = None):
        self.binary = binary

    def _command(self, config: AgentConfig | None, args: List[str]) -> List[str]:
        binary = self.binary or (config.engine_binary if config else DEFAULT_ENGINE_BINARY)
        command = [binary]
        if config is not None:
            command += ["--config", str(config.config_path)]
        return command + args

    async def _run(self, config: AgentConfig | None, args: List[str], out: TextIO) -> None:
        command = self._command(config, args)
        logger.debug("engine_command_started", command=command)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EngineError(
                f"Failed to start backup engine {command[0]!r}: {e}",
                details={"command": command},
            ) from e

        stderr_task = asyncio.create_task(process.stderr.read())
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await process.stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                out.write(decoder.decode(chunk))
            out.write(decoder.decode(b"", final=True))
            stderr = (await stderr_task).decode("utf-8", errors="replace").strip()
            returncode = await process.wait()
        finally:
            if not stderr_task.done():
                stderr_task.cancel()
                await asyncio.gather(stderr_task, return_exceptions=True)
            if process.returncode is None:
                logger.warning("engine_command_killed", command=command)
                process.kill()
                await process.wait()

        if returncode != 0:
            logger.debug("engine_command_failed", command=command, returncode=returncode)
            raise EngineError(
                stderr or f"{command[0]} exited with status {returncode}",
                details={"command": command, "returncode": returncode},
            )

    async def _list(
        self, config: AgentConfig, tier: str, backup_kind: str, format: str, out: TextIO
    ) -> None:
        if not backup_kind:
            await self._run(config, ["list", tier] + ([format] if format else []), out)
            return

        buffer = io.StringIO()
        await self._run(config, ["list", tier], buffer)
        out.write(filter_kind(buffer.getvalue(), backup_kind, format))

    async def print_tables(self, config: AgentConfig, *, out: TextIO) -> None:
        await self._run(config, ["tables"], out)

    async def create_backup(self, config, *, backup_kind, backup_name, tables, out) -> None:
        args = ["create"]
        if tables:
            args += ["--tables", tables]
        await self._run(config, args + [qualify(backup_kind, backup_name)], out)

    async def freeze(self, config, *, tables, out) -> None:
        args = ["freeze"]
        if tables:
            args += ["--tables", tables]
        await self._run(config, args, out)

    async def upload(self, config, *, backup_kind, backup_name, diff_from, out) -> None:
        args = ["upload"]
        if diff_from:
            args += ["--diff-from", qualify(backup_kind, diff_from)]
        await self._run(config, args + [qualify(backup_kind, backup_name)], out)

    async def download(self, config, *, backup_kind, backup_name, out) -> None:
        await self._run(config, ["download", qualify(backup_kind, backup_name)], out)

    async def restore(
        self, config, *, backup_kind, backup_name, tables, schema_only, data_only, out
    ) -> None:
        args = ["restore"]
        if tables:
            args += ["--tables", tables]
        if schema_only:
            args.append("--schema")
        if data_only:
            args.append("--data")
        await self._run(config, args + [qualify(backup_kind, backup_name)], out)

    async def remove_backup_local(self, config, *, backup_kind, backup_name, out) -> None:
        await self._run(config, ["delete", "local", qualify(backup_kind, backup_name)], out)

    async def remove_backup_remote(self, config, *, backup_kind, backup_name, out) -> None:
        await self._run(config, ["delete", "remote", qualify(backup_kind, backup_name)], out)

    async def print_local_backups(self, config, *, backup_kind, format, out) -> None:
        await self._list(config, "local", backup_kind, format, out)

    async def print_remote_backups(self, config, *, backup_kind, format, out) -> None:
        await self._list(config, "remote", backup_kind, format, out)

    async def clean(self, config: AgentConfig, *, out: TextIO) -> None:
        await self._run(config, ["clean"], out)

    async def is_clean(self, config: AgentConfig) -> bool:
        """True when the shadow directory is absent or empty."""
        clickhouse = config.raw.get("clickhouse") or {}
        data_path = Path(str(clickhouse.get("data_path") or DEFAULT_DATA_PATH))
        return await asyncio.to_thread(_is_empty_dir, data_path / "shadow")

    async def print_default_config(self, *, out: TextIO) -> None:
        await self._run(None, ["default-config"], out)
