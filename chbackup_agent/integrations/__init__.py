# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Framework Integrations - FastAPI application for the backup agent.
"""

from chbackup_agent.integrations.fastapi import (
    create_app,
    register_backup_routes,
)

__all__ = [
    "create_app",
    "register_backup_routes",
]
