# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Agent CLI - Command-line surface of the operation registry.

One operation per process. Positional arguments are assigned to address
fields by the registry, exactly as HTTP path segments are.
"""

import asyncio
import sys
from typing import Dict, List, Optional

import structlog
import typer

from chbackup_agent import __version__
from chbackup_agent.address import DIFF_FROM, AddressScheme, Options
from chbackup_agent.config import AgentConfig
from chbackup_agent.dispatch import execute
from chbackup_agent.engine import BackupEngine, CommandEngine
from chbackup_agent.env import CONFIG_ENV, load_config_from_env
from chbackup_agent.exceptions import AgentError, ConfigLoadError
from chbackup_agent.locks import ResourceLocks
from chbackup_agent.log import configure_logging
from chbackup_agent.registry import get_operation
from chbackup_agent.status import EXIT_FAILURE, exit_code_for

PROG = "clickhouse-backup-agent"

app = typer.Typer(
    name=PROG,
    add_completion=False,
    no_args_is_help=True,
    help="Tool for easy backup of ClickHouse with cloud support. Run as 'root' or 'clickhouse' user.",
)
logger = structlog.get_logger()

TABLES_OPTION = typer.Option("", "--tables", "--table", "-t", help="Table filter, <db>.<table>.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"Version:\t {__version__}")
        raise typer.Exit(code=0)


@app.callback()
def initialize_context(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", envvar=CONFIG_ENV, metavar="FILE", help="Config FILE name."
    ),
    log_level: str = typer.Option("info", "--log-level", help="Log level (debug, info, warning, error)."),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Print version."
    ),
) -> None:
    """Set up logging and remember where the config lives."""
    configure_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("config_path", config_path)


def _config(ctx: typer.Context) -> AgentConfig:
    """Load the config once per run, or exit."""
    if ctx.obj.get("config") is None:
        try:
            ctx.obj["config"] = load_config_from_env(ctx.obj.get("config_path"))
        except ConfigLoadError as e:
            logger.critical("config_load_failed", error=str(e))
            typer.echo(e.message, err=True)
            raise typer.Exit(code=EXIT_FAILURE)
    return ctx.obj["config"]


def _engine(ctx: typer.Context) -> BackupEngine:
    if ctx.obj.get("engine") is None:
        ctx.obj["engine"] = CommandEngine()
    return ctx.obj["engine"]


def _locks(ctx: typer.Context, config: AgentConfig | None) -> ResourceLocks | None:
    """File-backed locks shared with other runs and the server of this shard."""
    if ctx.obj.get("locks") is None and config is not None:
        ctx.obj["locks"] = ResourceLocks(config.runtime_dir())
    return ctx.obj.get("locks")


def _run(
    ctx: typer.Context,
    name: str,
    args: Optional[List[str]] = None,
    options: Options = Options(),
    extra: Optional[Dict[str, str]] = None,
) -> None:
    operation = get_operation(name)
    config = _config(ctx) if operation.needs_config else None
    scheme = config.addressing if config else AddressScheme.NAME

    try:
        raw = operation.parse_positionals(scheme, args or [])
        raw.update(extra or {})
        address, options = operation.resolve(raw, options)
    except AgentError as e:
        typer.echo(e.message, err=True)
        typer.echo(f"\nUsage: {PROG} {operation.usage}", err=True)
        typer.echo(f"Run '{PROG} {operation.cli_name} --help' for details.", err=True)
        raise typer.Exit(code=exit_code_for(e))

    try:
        asyncio.run(
            execute(
                operation,
                _engine(ctx),
                config,
                address,
                options,
                sys.stdout,
                locks=_locks(ctx, config),
            )
        )
    except AgentError as e:
        typer.echo(e.message, err=True)
        raise typer.Exit(code=exit_code_for(e))


@app.command()
def tables(ctx: typer.Context) -> None:
    """Print list of tables."""
    _run(ctx, "tables")


@app.command()
def create(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, metavar="[BACKUP_KIND] BACKUP_NAME"),
    tables: str = TABLES_OPTION,
) -> None:
    """Create new backup."""
    _run(ctx, "create", args, Options(tables=tables))


@app.command()
def upload(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, metavar="[BACKUP_KIND] BACKUP_NAME"),
    diff_from: str = typer.Option("", "--diff-from", help="Upload as a diff against this backup."),
) -> None:
    """Upload backup to remote storage."""
    _run(ctx, "upload", args, extra={DIFF_FROM: diff_from})


@app.command("list")
def list_backups(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, metavar="[all|local|remote] [BACKUP_KIND] [latest|penult]"),
) -> None:
    """Print list of backups."""
    _run(ctx, "list", args)


@app.command()
def download(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, metavar="[BACKUP_KIND] BACKUP_NAME"),
) -> None:
    """Download backup from remote storage."""
    _run(ctx, "download", args)


@app.command()
def restore(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, metavar="[BACKUP_KIND] BACKUP_NAME"),
    tables: str = TABLES_OPTION,
    schema: bool = typer.Option(False, "--schema", "-s", help="Restore schema only."),
    data: bool = typer.Option(False, "--data", "-d", help="Restore data only."),
) -> None:
    """Create schema and restore data from backup."""
    _run(ctx, "restore", args, Options(tables=tables, schema_only=schema, data_only=data))


@app.command()
def delete(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, metavar="<local|remote|all> [BACKUP_KIND] BACKUP_NAME"),
) -> None:
    """Delete specific backup."""
    _run(ctx, "delete", args)


@app.command()
def freeze(ctx: typer.Context, tables: str = TABLES_OPTION) -> None:
    """Freeze tables."""
    _run(ctx, "freeze", options=Options(tables=tables))


@app.command()
def clean(ctx: typer.Context) -> None:
    """Remove data in 'shadow' folder."""
    _run(ctx, "clean")


@app.command()
def isclean(ctx: typer.Context) -> None:
    """Print whether the 'shadow' folder is empty."""
    _run(ctx, "isClean")


@app.command("default-config")
def default_config(ctx: typer.Context) -> None:
    """Print default config."""
    _run(ctx, "default-config")


@app.command()
def serve(ctx: typer.Context) -> None:
    """Start the HTTP server for handling backup commands."""
    import uvicorn

    from chbackup_agent.integrations.fastapi import create_app

    config = _config(ctx)
    host, port = config.listen_address()
    logger.info("server_starting", host=host, port=port, addressing=config.addressing.value)
    uvicorn.run(create_app(config, _engine(ctx)), host=host, port=port)


def main() -> None:
    """CLI entry point."""
    app(prog_name=PROG)
