# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Fan-out Executor - Runs a tier-addressed operation against local, then remote.

The local call always runs first and the remote call only runs after the
local call succeeded. Output already written by the local call stays
written when the remote call fails.
"""

from typing import TextIO

import structlog

from chbackup_agent.address import Address, Options, ServerTier
from chbackup_agent.config import AgentConfig
from chbackup_agent.engine import BackupEngine
from chbackup_agent.registry import Operation

FANOUT_ORDER = (ServerTier.LOCAL, ServerTier.REMOTE)

TIER_TITLES = {
    ServerTier.LOCAL: "Local backups:",
    ServerTier.REMOTE: "Remote backups:",
}


async def run_fanout(
    operation: Operation,
    engine: BackupEngine,
    config: AgentConfig | None,
    address: Address,
    options: Options,
    out: TextIO,
    log=None,
) -> None:
    """
    Execute ``operation`` once per tier in FANOUT_ORDER.

    The first failing sub-call propagates immediately; later tiers are
    never attempted.
    """
    log = log or structlog.get_logger()

    for tier in FANOUT_ORDER:
        if operation.titled:
            out.write(f"{TIER_TITLES[tier]}\n")
        log.info("fanout_step", tier=tier.value)
        await operation.call(engine, config, address.with_tier(tier), options, out)
