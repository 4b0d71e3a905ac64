# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Address Model - Typed representation of "which backup, where".

An Address is built fresh for every CLI run or HTTP request from raw
positional, path and flag strings. Both transports go through
build_address() so that equivalent inputs always produce equal values.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping, Sequence

from chbackup_agent.errors import explain_missing_field, explain_unknown_tier
from chbackup_agent.exceptions import UnknownOperationError, UsageError


class ServerTier(str, Enum):
    """Where the addressed backups live."""

    LOCAL = "local"
    REMOTE = "remote"
    ALL = "all"  # local first, then remote


class AddressScheme(str, Enum):
    """Positional addressing grammar shared by the CLI and HTTP surfaces."""

    NAME = "name"  # <backup_name>
    KIND = "kind"  # [backup_kind] <backup_name>


# Raw field names, also used as HTTP path placeholders
SERVER_TIER = "server_tier"
BACKUP_KIND = "backup_kind"
BACKUP_NAME = "backup_name"
DIFF_FROM = "diff_from"
FORMAT = "format"

ADDRESS_FIELDS = (SERVER_TIER, BACKUP_KIND, BACKUP_NAME, DIFF_FROM)


@dataclass(frozen=True)
class Address:
    """Target of a single operation invocation."""

    server_tier: ServerTier | None = None
    backup_kind: str = ""
    backup_name: str = ""
    diff_from: str = ""

    def with_tier(self, tier: ServerTier) -> "Address":
        """Return a copy addressed at a single tier."""
        return replace(self, server_tier=tier)

    @property
    def resource_key(self) -> str:
        """Lock key of the backup this address names."""
        if self.backup_kind:
            return f"backup:{self.backup_kind}/{self.backup_name}"
        return f"backup:{self.backup_name}"


@dataclass(frozen=True)
class Options:
    """Operation flags passed through to the engine unchanged."""

    tables: str = ""
    schema_only: bool = False
    data_only: bool = False
    format: str = ""


def parse_tier(
    operation: str,
    value: str | None,
    allowed: Sequence[ServerTier],
    default: ServerTier | None = None,
) -> ServerTier:
    """
    Parse a raw server tier string.

    An empty value resolves to ``default``. Anything that is not one of the
    ``allowed`` tiers raises UnknownOperationError.
    """
    raw = (value or "").strip()
    allowed_values = [tier.value for tier in allowed]

    if not raw and default is not None:
        return default

    if raw not in allowed_values:
        raise UnknownOperationError(
            explain_unknown_tier(operation, raw, allowed_values),
            details={"operation": operation, "server_tier": raw},
        )
    return ServerTier(raw)


def build_address(
    operation: str,
    raw: Mapping[str, str | None],
    *,
    required: Sequence[str] = (),
    tiers: Sequence[ServerTier] | None = None,
    default_tier: ServerTier | None = None,
) -> Address:
    """
    Construct and validate an Address from raw strings.

    Args:
        operation: Operation name, used in error messages
        raw: Raw field values keyed by field name (missing == empty)
        required: Field names that must be non-empty
        tiers: Accepted server tiers, or None if the operation has no tier
        default_tier: Tier used when the raw tier is empty

    Raises:
        UsageError: A required field is empty
        UnknownOperationError: The server tier is not recognized
    """
    values = {name: (raw.get(name) or "") for name in ADDRESS_FIELDS}

    for name in required:
        if not values.get(name, "").strip():
            raise UsageError(
                explain_missing_field(operation, name),
                details={"operation": operation, "field": name},
            )

    server_tier = None
    if tiers is not None:
        server_tier = parse_tier(operation, values[SERVER_TIER], tiers, default_tier)

    return Address(
        server_tier=server_tier,
        backup_kind=values[BACKUP_KIND],
        backup_name=values[BACKUP_NAME],
        diff_from=values[DIFF_FROM],
    )
