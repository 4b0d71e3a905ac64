# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Error/Status Translator - Maps outcomes to exit codes and HTTP statuses.
"""

from typing import Dict, Type

from chbackup_agent.exceptions import (
    ConfigLoadError,
    EngineError,
    ResourceBusyError,
    UnknownOperationError,
    UsageError,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

HTTP_OK = 200
HTTP_ERROR = 500

_HTTP_STATUS: Dict[Type[BaseException], int] = {
    UsageError: 400,
    UnknownOperationError: 404,
    ResourceBusyError: 409,
    EngineError: HTTP_ERROR,
    ConfigLoadError: HTTP_ERROR,
}

_EXIT_CODE: Dict[Type[BaseException], int] = {
    UsageError: EXIT_USAGE,
    UnknownOperationError: EXIT_USAGE,
    ResourceBusyError: EXIT_FAILURE,
    EngineError: EXIT_FAILURE,
    ConfigLoadError: EXIT_FAILURE,
}


def _lookup(table: Dict[Type[BaseException], int], exc: BaseException, default: int) -> int:
    for cls in type(exc).__mro__:
        if cls in table:
            return table[cls]
    return default


def http_status_for(exc: BaseException) -> int:
    """HTTP status for a failed request."""
    return _lookup(_HTTP_STATUS, exc, HTTP_ERROR)


def exit_code_for(exc: BaseException) -> int:
    """Process exit code for a failed CLI run."""
    return _lookup(_EXIT_CODE, exc, EXIT_FAILURE)


def is_usage_failure(exc: BaseException) -> bool:
    """True for failures the CLI answers with help text."""
    return isinstance(exc, (UsageError, UnknownOperationError))
