# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for the backup agent.

These helpers centralize wording for common addressing and configuration
errors so that the CLI and HTTP surfaces present identical messages.
"""

from typing import Iterable


def explain_missing_field(operation: str, field_name: str) -> str:
    """
    Explain that an operation was invoked without a required address field.
    """

    label = field_name.replace("_", " ")
    return f"{label.capitalize()} must be defined for '{operation}'."


def explain_unknown_tier(operation: str, value: str, allowed: Iterable[str]) -> str:
    """
    Explain that a server tier is not one of the recognized values.
    """

    return (
        f"Unknown command '{value}' for '{operation}'. "
        f"Expected one of: {', '.join(repr(v) for v in allowed)}."
    )


def explain_unknown_operation(name: str) -> str:
    """
    Explain that an operation name is not in the catalogue.
    """

    return f"Unknown command: '{name}'"


def explain_too_many_arguments(operation: str, extra: Iterable[str]) -> str:
    """
    Explain that more positional arguments were passed than the grammar allows.
    """

    return f"Unexpected arguments for '{operation}': {' '.join(extra)}"


def explain_resource_busy(resource: str) -> str:
    """
    Explain that another operation currently holds a backup resource.
    """

    return (
        f"Resource {resource!r} is busy: another operation is still running. "
        "Retry once it has finished."
    )


def explain_missing_config_file(path: str) -> str:
    """
    Explain that the configuration file does not exist.
    """

    return (
        f"Config file {path!r} not found. "
        "Pass --config FILE or set the CLICKHOUSE_BACKUP_CONFIG environment variable."
    )


def explain_invalid_port_env(value: str | None) -> str:
    """
    Explain that CLICKHOUSE_BACKUP_SHARD_PORT is invalid.
    """

    return (
        f"Invalid CLICKHOUSE_BACKUP_SHARD_PORT value: {value!r}. "
        "It must be an integer between 1 and 65535."
    )


def explain_invalid_addressing_env(value: str | None) -> str:
    """
    Explain that CLICKHOUSE_BACKUP_ADDRESSING is invalid.
    """

    return (
        f"Invalid CLICKHOUSE_BACKUP_ADDRESSING value: {value!r}. "
        "Expected 'name' or 'kind'."
    )
