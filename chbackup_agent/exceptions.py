# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Agent Exceptions - Custom exceptions for the chbackup_agent package.
"""


class AgentError(Exception):
    """Base exception for all backup agent errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class UsageError(AgentError):
    """Raised when caller-supplied addressing is incomplete or invalid."""

    pass


class UnknownOperationError(AgentError):
    """Raised for an unrecognized server tier or operation name."""

    pass


class EngineError(AgentError):
    """
    Raised when the backup engine reports a failure.

    The engine message is passed through verbatim, so ``__str__`` never
    decorates it with details.
    """

    def __str__(self) -> str:
        return self.message


class ConfigLoadError(AgentError):
    """Raised when the agent configuration cannot be loaded."""

    pass


class ResourceBusyError(AgentError):
    """Raised when a backup resource is already held by another operation."""

    pass
