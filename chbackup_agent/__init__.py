# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ClickHouse Backup Agent - Operation dispatch for a database backup engine.

Exposes one catalogue of backup, restore, list and delete operations
identically through a command-line interface and an HTTP listener, and
translates engine results and errors back into exit codes and HTTP
statuses. Package name: chbackup_agent.
"""

__version__ = "0.1.0"

# Addressing
from chbackup_agent.address import Address, AddressScheme, Options, ServerTier

# Configuration
from chbackup_agent.config import AgentConfig, load_config

# Dispatch
from chbackup_agent.dispatch import execute
from chbackup_agent.engine import BackupEngine, CommandEngine
from chbackup_agent.registry import OPERATIONS, get_operation

__all__ = [
    # Version
    "__version__",
    # Addressing
    "Address",
    "AddressScheme",
    "Options",
    "ServerTier",
    # Configuration
    "AgentConfig",
    "load_config",
    # Dispatch
    "execute",
    "BackupEngine",
    "CommandEngine",
    "OPERATIONS",
    "get_operation",
]
