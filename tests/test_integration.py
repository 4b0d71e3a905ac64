# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Integration Tests for the HTTP surface.

These tests verify the integration between components:
- FastAPI routes generated from the registry
- Dispatch and fan-out behind HTTP
- Status translation
- Request metrics
"""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from chbackup_agent.integrations.fastapi import create_app
from chbackup_agent.locks import ResourceLocks
from chbackup_agent.metrics import RequestMetrics
from chbackup_agent.registry import http_routes

from conftest import FakeEngine


def make_client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ============================================================================
# Operation routes
# ============================================================================

@pytest.mark.asyncio
async def test_create_returns_engine_output(engine, test_config):
    metrics = RequestMetrics()
    app = create_app(test_config, engine, metrics)

    async with make_client(app) as client:
        response = await client.post("/create/nightly")

    assert response.status_code == 200
    assert "create_backup ok" in response.text
    assert engine.kwargs("create_backup") == {
        "backup_kind": "",
        "backup_name": "nightly",
        "tables": "default.*",
    }
    assert metrics.sample_count("POST", "/create/{backup_name}", 200) == 1.0


@pytest.mark.asyncio
async def test_create_tables_query_overrides_config(engine, test_config):
    app = create_app(test_config, engine)

    async with make_client(app) as client:
        response = await client.post("/create/nightly", params={"tables": "db.events"})

    assert response.status_code == 200
    assert engine.kwargs("create_backup")["tables"] == "db.events"


@pytest.mark.asyncio
async def test_upload_diff_from_path_and_query(engine, test_config):
    app = create_app(test_config, engine)

    async with make_client(app) as client:
        first = await client.post("/upload/nightly/sunday")
        second = await client.post("/upload/nightly", params={"diff_from": "saturday"})
        third = await client.post("/upload/nightly")

    assert [r.status_code for r in (first, second, third)] == [200, 200, 200]
    assert [kwargs["diff_from"] for _, kwargs in engine.calls] == ["sunday", "saturday", ""]


@pytest.mark.asyncio
async def test_restore_query_flags(engine, test_config):
    app = create_app(test_config, engine)

    async with make_client(app) as client:
        response = await client.post("/restore/nightly", params={"schema": "true"})

    assert response.status_code == 200
    assert engine.kwargs("restore")["schema_only"] is True
    assert engine.kwargs("restore")["data_only"] is False


@pytest.mark.asyncio
async def test_list_local_failure_returns_500(test_config):
    engine = FakeEngine(failures={"print_local_backups": "local disk unavailable"})
    metrics = RequestMetrics()
    app = create_app(test_config, engine, metrics)

    async with make_client(app) as client:
        response = await client.get("/list/all")

    assert response.status_code == 500
    assert "local disk unavailable" in response.text
    assert engine.called() == ["print_local_backups"]
    assert metrics.sample_count("GET", "/list/{server_tier}", 500) == 1.0
    assert metrics.sample_count("GET", "/list/{server_tier}", 200) == 0.0


@pytest.mark.asyncio
async def test_list_with_format(engine, test_config):
    app = create_app(test_config, engine)

    async with make_client(app) as client:
        response = await client.get("/list/remote/latest")

    assert response.status_code == 200
    assert engine.called() == ["print_remote_backups"]
    assert engine.kwargs("print_remote_backups")["format"] == "latest"


@pytest.mark.asyncio
async def test_delete_unknown_tier_is_404(engine, test_config):
    metrics = RequestMetrics()
    app = create_app(test_config, engine, metrics)

    async with make_client(app) as client:
        response = await client.post("/delete/bogus/nightly")

    assert response.status_code == 404
    assert "Unknown command 'bogus'" in response.text
    assert engine.calls == []
    assert metrics.sample_count("POST", "/delete/{server_tier}/{backup_name}", 404) == 1.0


@pytest.mark.asyncio
async def test_is_clean_and_tables(engine, test_config):
    app = create_app(test_config, engine)

    async with make_client(app) as client:
        clean = await client.get("/is-clean")
        tables = await client.get("/tables")

    assert clean.status_code == 200
    assert clean.text == "true\n"
    assert tables.status_code == 200
    assert "print_tables ok" in tables.text


@pytest.mark.asyncio
async def test_freeze_without_output_confirms(test_config):
    class QuietEngine(FakeEngine):
        async def freeze(self, config, *, tables, out):
            await self._record("freeze", None, tables=tables)

    app = create_app(test_config, QuietEngine())

    async with make_client(app) as client:
        response = await client.post("/freeze")

    assert response.status_code == 200
    assert response.text == "freeze: ok\n"


@pytest.mark.asyncio
async def test_kind_scheme_routes(engine, kind_config):
    app = create_app(kind_config, engine)

    async with make_client(app) as client:
        with_kind = await client.post("/create/shard1/nightly")
        without_kind = await client.post("/download/nightly")

    assert with_kind.status_code == 200
    assert without_kind.status_code == 200
    assert engine.kwargs("create_backup")["backup_kind"] == "shard1"
    assert engine.kwargs("download") == {"backup_kind": "", "backup_name": "nightly"}


@pytest.mark.asyncio
async def test_concurrent_create_same_backup_is_409(engine, test_config):
    app = create_app(test_config, engine)
    engine.gate("create_backup")

    async with make_client(app) as client:
        first = asyncio.create_task(client.post("/create/nightly"))
        await engine.entered["create_backup"].wait()

        second = await client.post("/create/nightly")
        health = await client.get("/health")

        engine.gates["create_backup"].set()
        first_response = await first

    assert second.status_code == 409
    assert "busy" in second.text
    assert health.json()["held_resources"] == ["backup:nightly", "shadow"]
    assert first_response.status_code == 200
    assert engine.called() == ["create_backup"]


@pytest.mark.asyncio
async def test_create_is_409_while_cli_holds_shadow(engine, test_config):
    metrics = RequestMetrics()
    app = create_app(test_config, engine, metrics)
    cli_locks = ResourceLocks(test_config.runtime_dir())

    assert metrics.sample_count("POST", "/create/{backup_name}", 409) is None

    async with make_client(app) as client:
        async with cli_locks.hold(["shadow"]):
            busy = await client.post("/create/nightly")
        free = await client.post("/create/nightly")

    assert busy.status_code == 409
    assert "'shadow' is busy" in busy.text
    assert free.status_code == 200
    assert engine.called() == ["create_backup"]
    assert metrics.sample_count("POST", "/create/{backup_name}", 409) == 1.0


# ============================================================================
# Metrics
# ============================================================================

@pytest.mark.asyncio
async def test_series_preregistered_before_traffic(engine, test_config):
    metrics = RequestMetrics()
    create_app(test_config, engine, metrics)

    for op, template, _ in http_routes(test_config.addressing):
        for status in (200, 500):
            assert metrics.sample_count(op.http_method, template, status) == 0.0

    assert metrics.sample_count("POST", "/create/{backup_name}", 404) is None


@pytest.mark.asyncio
async def test_one_observation_per_request(test_config):
    engine = FakeEngine(failures={"clean": "shadow busy"})
    metrics = RequestMetrics()
    app = create_app(test_config, engine, metrics)

    async with make_client(app) as client:
        await client.post("/create/nightly")
        await client.post("/create/weekly")
        await client.post("/clean")

    assert metrics.sample_count("POST", "/create/{backup_name}", 200) == 2.0
    assert metrics.sample_count("POST", "/clean", 500) == 1.0
    assert metrics.sample_count("POST", "/clean", 200) == 0.0


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_histogram(engine, test_config):
    app = create_app(test_config, engine)

    async with make_client(app) as client:
        await client.post("/create/nightly")
        response = await client.get("/metrics")

    assert response.status_code == 200
    assert "clickhouse_backup_agent_request_duration_seconds_bucket" in response.text
    assert 'le="14400.0"' in response.text
    assert 'path="/create/{backup_name}"' in response.text
