# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Agent FastAPI Integration - HTTP surface of the operation registry.

This module provides:
- One route per operation and accepted path arity, generated from the registry
- Per-request latency metrics labelled with the route template
- A Prometheus exposition endpoint and a health check
"""

import io
from typing import Mapping, Tuple

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from chbackup_agent import __version__
from chbackup_agent.address import DIFF_FROM, Options
from chbackup_agent.config import AgentConfig
from chbackup_agent.dispatch import execute
from chbackup_agent.engine import BackupEngine, CommandEngine
from chbackup_agent.exceptions import AgentError
from chbackup_agent.locks import ResourceLocks
from chbackup_agent.metrics import RequestMetrics
from chbackup_agent.registry import Operation, http_routes
from chbackup_agent.status import HTTP_OK, http_status_for

logger = structlog.get_logger()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def options_from_query(query: Mapping[str, str]) -> Options:
    """
    Build Options from query parameters.

    Recognized: tables (alias table), schema, data.
    """
    return Options(
        tables=query.get("tables") or query.get("table") or "",
        schema_only=_flag(query.get("schema")),
        data_only=_flag(query.get("data")),
    )


def raw_address(
    operation: Operation,
    fields: Tuple[str, ...],
    path_params: Mapping[str, str],
    query: Mapping[str, str],
) -> dict:
    """Collect raw address fields from the path, plus diff_from from the query."""
    raw = {name: path_params.get(name, "") for name in fields}
    accepts_diff = any(slot.name == DIFF_FROM for slot in operation.http_extra)
    if accepts_diff and not raw.get(DIFF_FROM):
        raw[DIFF_FROM] = query.get(DIFF_FROM, "")
    return raw


def _make_endpoint(
    operation: Operation,
    template: str,
    fields: Tuple[str, ...],
    config: AgentConfig,
    engine: BackupEngine,
    metrics: RequestMetrics,
    locks: ResourceLocks,
):
    async def endpoint(request: Request) -> PlainTextResponse:
        out = io.StringIO()
        with metrics.time_request(operation.http_method, template) as timer:
            try:
                raw = raw_address(operation, fields, request.path_params, request.query_params)
                address, options = operation.resolve(raw, options_from_query(request.query_params))
                await execute(operation, engine, config, address, options, out, locks=locks)
            except AgentError as e:
                status = http_status_for(e)
                timer.status = str(status)
                logger.warning(
                    "http_request_failed",
                    method=operation.http_method,
                    path=template,
                    status=status,
                    error=e.message,
                )
                return PlainTextResponse(f"{out.getvalue()}{e.message}\n", status_code=status)

            timer.status = str(HTTP_OK)
            return PlainTextResponse(out.getvalue() or f"{operation.name}: ok\n")

    endpoint.__name__ = f"{operation.http_name.replace('-', '_')}_{len(fields)}"
    return endpoint


def register_backup_routes(
    app: FastAPI,
    config: AgentConfig,
    engine: BackupEngine,
    metrics: RequestMetrics,
    locks: ResourceLocks,
) -> None:
    """
    Register every registry operation on a FastAPI app.

    Args:
        app: FastAPI application
        config: Agent configuration (selects the addressing scheme)
        engine: Backup engine handlers call into
        metrics: Metrics recorder, pre-registered here
        locks: Resource locks shared by all handlers
    """
    routes = http_routes(config.addressing)
    metrics.preregister((op.http_method, template) for op, template, _ in routes)

    for op, template, fields in routes:
        app.add_api_route(
            template,
            _make_endpoint(op, template, fields, config, engine, metrics, locks),
            methods=[op.http_method],
            response_class=PlainTextResponse,
            summary=op.summary,
        )

    @app.get("/metrics")
    async def get_metrics() -> Response:
        """Prometheus exposition of request metrics."""
        payload, content_type = metrics.render()
        return Response(content=payload, media_type=content_type)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "ok", "held_resources": locks.held()}

    logger.info(
        "backup_routes_registered",
        routes=len(routes),
        addressing=config.addressing.value,
    )


def create_app(
    config: AgentConfig,
    engine: BackupEngine | None = None,
    metrics: RequestMetrics | None = None,
    locks: ResourceLocks | None = None,
) -> FastAPI:
    """
    Build the agent's HTTP application.

    Args:
        config: Agent configuration
        engine: Backup engine (default: CommandEngine)
        metrics: Metrics recorder (default: a fresh one on its own registry)
        locks: Resource locks (default: lock files in config.runtime_dir())
    """
    app = FastAPI(
        title="ClickHouse Backup Agent",
        description="Backup, restore, list and delete operations over HTTP",
        version=__version__,
    )
    register_backup_routes(
        app,
        config,
        engine or CommandEngine(),
        metrics or RequestMetrics(),
        locks or ResourceLocks(config.runtime_dir()),
    )
    return app
