# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Dispatch core - Runs one validated operation against the backup engine.

Both transport adapters end up here with a typed (config, address,
options) triple. The dispatcher takes the operation's resource locks,
fans out tier ``all`` requests, and normalizes engine failures into
EngineError. It never retries.
"""

import time
from contextlib import nullcontext
from typing import TextIO

import structlog
from ulid import ULID

from chbackup_agent.address import Address, Options, ServerTier
from chbackup_agent.config import AgentConfig
from chbackup_agent.engine import BackupEngine
from chbackup_agent.exceptions import AgentError, EngineError
from chbackup_agent.fanout import run_fanout
from chbackup_agent.locks import ResourceLocks
from chbackup_agent.registry import Operation

logger = structlog.get_logger()


async def execute(
    operation: Operation,
    engine: BackupEngine,
    config: AgentConfig | None,
    address: Address,
    options: Options,
    out: TextIO,
    *,
    locks: ResourceLocks | None = None,
) -> None:
    """
    Execute one operation invocation.

    Args:
        operation: Catalogue entry to run
        engine: Backup engine
        config: Loaded configuration (None only for default-config)
        address: Validated address
        options: Pass-through flags
        out: Stream engine output is written to
        locks: Shared resource locks (None disables exclusion)

    Raises:
        ResourceBusyError: A resource the operation needs is held
        EngineError: The engine failed
    """
    operation_id = str(ULID())
    log = logger.bind(
        operation=operation.name,
        operation_id=operation_id,
        server_tier=address.server_tier.value if address.server_tier else None,
        backup_kind=address.backup_kind or None,
        backup_name=address.backup_name or None,
    )
    start_time = time.monotonic()

    keys = operation.lock_keys(address)
    guard = locks.hold(keys) if locks is not None and keys else nullcontext()

    async with guard:
        log.info("operation_started")
        try:
            if address.server_tier is ServerTier.ALL:
                await run_fanout(operation, engine, config, address, options, out, log)
            else:
                await operation.call(engine, config, address, options, out)
        except AgentError as e:
            log.error("operation_failed", error=e.message)
            raise
        except Exception as e:
            log.error("operation_failed", error=str(e), error_type=type(e).__name__)
            raise EngineError(str(e) or type(e).__name__, details={"operation": operation.name}) from e

    log.info(
        "operation_completed",
        duration_seconds=round(time.monotonic() - start_time, 3),
    )
