# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Operation Registry - The catalogue of backup agent operations.

Every operation is one data-driven entry: its HTTP method and path, its
positional grammar, the address fields it requires, the resources it
must hold exclusively, and an adapter that maps (config, address,
options) onto a single engine call.

The CLI and the HTTP listener both read this table. Positional CLI
arguments and HTTP path segments are assigned to address fields by the
same function, so the two surfaces cannot drift apart.
"""

from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, List, NamedTuple, Sequence, TextIO, Tuple

from chbackup_agent.address import (
    BACKUP_KIND,
    BACKUP_NAME,
    DIFF_FROM,
    FORMAT,
    SERVER_TIER,
    Address,
    AddressScheme,
    Options,
    ServerTier,
    build_address,
)
from chbackup_agent.config import AgentConfig
from chbackup_agent.engine import BackupEngine
from chbackup_agent.errors import explain_too_many_arguments, explain_unknown_operation
from chbackup_agent.exceptions import UnknownOperationError, UsageError

# Lock resources
SHADOW = "shadow"
BACKUP = "backup"

EngineCall = Callable[
    [BackupEngine, AgentConfig | None, Address, Options, TextIO], Awaitable[None]
]


class Slot(NamedTuple):
    """One positional argument / path segment."""

    name: str
    required: bool = False
    kind_only: bool = False  # present only under the kind addressing scheme


@dataclass(frozen=True)
class Operation:
    """A named catalogue entry."""

    name: str
    cli_name: str
    http_method: str
    http_name: str
    summary: str
    call: EngineCall
    slots: Tuple[Slot, ...] = ()
    http_extra: Tuple[Slot, ...] = ()
    required: Tuple[str, ...] = ()
    tiers: Tuple[ServerTier, ...] | None = None
    default_tier: ServerTier | None = None
    locks: Tuple[str, ...] = ()
    needs_config: bool = True
    titled: bool = False  # print a header per tier when fanned out
    usage: str = field(default="", compare=False)

    def cli_slots(self, scheme: AddressScheme) -> Tuple[Slot, ...]:
        if scheme is AddressScheme.KIND:
            return self.slots
        return tuple(slot for slot in self.slots if not slot.kind_only)

    def http_slots(self, scheme: AddressScheme) -> Tuple[Slot, ...]:
        return self.cli_slots(scheme) + self.http_extra

    def parse_positionals(self, scheme: AddressScheme, values: Sequence[str]) -> Dict[str, str]:
        """Assign CLI positional arguments to field names."""
        return assign_positionals(self.name, self.cli_slots(scheme), values)

    def resolve(self, raw: Dict[str, str], options: Options) -> Tuple[Address, Options]:
        """
        Build the validated Address and final Options for one invocation.

        Raises:
            UsageError: A required address field is empty
            UnknownOperationError: The server tier is not recognized
        """
        address = build_address(
            self.name,
            raw,
            required=self.required,
            tiers=self.tiers,
            default_tier=self.default_tier,
        )
        return address, replace(options, format=raw.get(FORMAT) or options.format)

    def lock_keys(self, address: Address) -> List[str]:
        keys = []
        if SHADOW in self.locks:
            keys.append(SHADOW)
        if BACKUP in self.locks:
            keys.append(address.resource_key)
        return keys

    def routes(self, scheme: AddressScheme) -> List[Tuple[str, Tuple[str, ...]]]:
        """
        HTTP path templates for this operation, one per accepted arity.

        Returns:
            List of (template, field names in path order)
        """
        slots = self.http_slots(scheme)
        minimum = sum(1 for slot in slots if slot.required)
        routes = []
        for count in range(minimum, len(slots) + 1):
            names = tuple(assign_positionals(self.name, slots, [""] * count))
            template = f"/{self.http_name}" + "".join(f"/{{{name}}}" for name in names)
            routes.append((template, names))
        return routes


def assign_positionals(operation: str, slots: Sequence[Slot], values: Sequence[str]) -> Dict[str, str]:
    """
    Assign positional values to slots.

    Required slots always consume a value (empty when the caller ran out).
    Optional slots are filled left to right with whatever is left over, so
    ``create nightly`` means a name and ``create hourly nightly`` means a
    kind and a name.

    Raises:
        UsageError: More values than slots
    """
    values = list(values)
    if len(values) > len(slots):
        extra = values[len(slots):]
        raise UsageError(
            explain_too_many_arguments(operation, extra),
            details={"operation": operation, "extra": extra},
        )

    spare = len(values) - sum(1 for slot in slots if slot.required)
    remaining = iter(values)
    assigned: Dict[str, str] = {}
    for slot in slots:
        if slot.required:
            assigned[slot.name] = next(remaining, "")
        elif spare > 0:
            assigned[slot.name] = next(remaining)
            spare -= 1
    return assigned


def _tables(options: Options, config: AgentConfig | None) -> str:
    if options.tables:
        return options.tables
    return config.tables if config else ""


# ============================================================================
# Engine adapters
# ============================================================================

async def _call_tables(engine, config, address, options, out) -> None:
    await engine.print_tables(config, out=out)


async def _call_create(engine, config, address, options, out) -> None:
    await engine.create_backup(
        config,
        backup_kind=address.backup_kind,
        backup_name=address.backup_name,
        tables=_tables(options, config),
        out=out,
    )


async def _call_upload(engine, config, address, options, out) -> None:
    await engine.upload(
        config,
        backup_kind=address.backup_kind,
        backup_name=address.backup_name,
        diff_from=address.diff_from,
        out=out,
    )


async def _call_download(engine, config, address, options, out) -> None:
    await engine.download(
        config,
        backup_kind=address.backup_kind,
        backup_name=address.backup_name,
        out=out,
    )


async def _call_restore(engine, config, address, options, out) -> None:
    await engine.restore(
        config,
        backup_kind=address.backup_kind,
        backup_name=address.backup_name,
        tables=_tables(options, config),
        schema_only=options.schema_only,
        data_only=options.data_only,
        out=out,
    )


async def _call_delete(engine, config, address, options, out) -> None:
    remove = (
        engine.remove_backup_local
        if address.server_tier is ServerTier.LOCAL
        else engine.remove_backup_remote
    )
    await remove(
        config,
        backup_kind=address.backup_kind,
        backup_name=address.backup_name,
        out=out,
    )


async def _call_list(engine, config, address, options, out) -> None:
    show = (
        engine.print_local_backups
        if address.server_tier is ServerTier.LOCAL
        else engine.print_remote_backups
    )
    await show(config, backup_kind=address.backup_kind, format=options.format, out=out)


async def _call_freeze(engine, config, address, options, out) -> None:
    await engine.freeze(config, tables=_tables(options, config), out=out)


async def _call_clean(engine, config, address, options, out) -> None:
    await engine.clean(config, out=out)


async def _call_is_clean(engine, config, address, options, out) -> None:
    clean = await engine.is_clean(config)
    out.write("true\n" if clean else "false\n")


async def _call_default_config(engine, config, address, options, out) -> None:
    await engine.print_default_config(out=out)


# ============================================================================
# Catalogue
# ============================================================================

_KIND = Slot(BACKUP_KIND, kind_only=True)
_NAME = Slot(BACKUP_NAME, required=True)
_ALL_TIERS = (ServerTier.LOCAL, ServerTier.REMOTE, ServerTier.ALL)

OPERATIONS: Dict[str, Operation] = {
    op.name: op
    for op in (
        Operation(
            name="tables",
            cli_name="tables",
            http_method="GET",
            http_name="tables",
            summary="Print list of tables",
            call=_call_tables,
            usage="tables",
        ),
        Operation(
            name="create",
            cli_name="create",
            http_method="POST",
            http_name="create",
            summary="Create new backup",
            call=_call_create,
            slots=(_KIND, _NAME),
            required=(BACKUP_NAME,),
            locks=(SHADOW, BACKUP),
            usage="create [-t, --tables=<db>.<table>] [backup_kind] <backup_name>",
        ),
        Operation(
            name="upload",
            cli_name="upload",
            http_method="POST",
            http_name="upload",
            summary="Upload backup to remote storage",
            call=_call_upload,
            slots=(_KIND, _NAME),
            http_extra=(Slot(DIFF_FROM),),
            required=(BACKUP_NAME,),
            locks=(BACKUP,),
            usage="upload [--diff-from=<backup_name>] [backup_kind] <backup_name>",
        ),
        Operation(
            name="download",
            cli_name="download",
            http_method="POST",
            http_name="download",
            summary="Download backup from remote storage",
            call=_call_download,
            slots=(_KIND, _NAME),
            required=(BACKUP_NAME,),
            locks=(BACKUP,),
            usage="download [backup_kind] <backup_name>",
        ),
        Operation(
            name="restore",
            cli_name="restore",
            http_method="POST",
            http_name="restore",
            summary="Create schema and restore data from backup",
            call=_call_restore,
            slots=(_KIND, _NAME),
            required=(BACKUP_NAME,),
            locks=(BACKUP,),
            usage="restore [--schema] [--data] [-t, --tables=<db>.<table>] [backup_kind] <backup_name>",
        ),
        Operation(
            name="delete",
            cli_name="delete",
            http_method="POST",
            http_name="delete",
            summary="Delete specific backup",
            call=_call_delete,
            slots=(Slot(SERVER_TIER, required=True), _KIND, _NAME),
            required=(BACKUP_NAME,),
            tiers=_ALL_TIERS,
            default_tier=ServerTier.ALL,
            locks=(BACKUP,),
            usage="delete <local|remote|all> [backup_kind] <backup_name>",
        ),
        Operation(
            name="list",
            cli_name="list",
            http_method="GET",
            http_name="list",
            summary="Print list of backups",
            call=_call_list,
            slots=(Slot(SERVER_TIER), _KIND, Slot(FORMAT)),
            tiers=_ALL_TIERS,
            default_tier=ServerTier.ALL,
            titled=True,
            usage="list [all|local|remote] [backup_kind] [latest|penult]",
        ),
        Operation(
            name="freeze",
            cli_name="freeze",
            http_method="POST",
            http_name="freeze",
            summary="Freeze tables",
            call=_call_freeze,
            locks=(SHADOW,),
            usage="freeze [-t, --tables=<db>.<table>]",
        ),
        Operation(
            name="clean",
            cli_name="clean",
            http_method="POST",
            http_name="clean",
            summary="Remove data in 'shadow' folder",
            call=_call_clean,
            locks=(SHADOW,),
            usage="clean",
        ),
        Operation(
            name="isClean",
            cli_name="isclean",
            http_method="GET",
            http_name="is-clean",
            summary="Check whether the 'shadow' folder is empty",
            call=_call_is_clean,
            usage="isclean",
        ),
        Operation(
            name="default-config",
            cli_name="default-config",
            http_method="GET",
            http_name="default-config",
            summary="Print default config",
            call=_call_default_config,
            needs_config=False,
            usage="default-config",
        ),
    )
}


def get_operation(name: str) -> Operation:
    """
    Look up an operation by catalogue name or CLI name.

    Raises:
        UnknownOperationError: Name is not in the catalogue
    """
    if name in OPERATIONS:
        return OPERATIONS[name]
    for op in OPERATIONS.values():
        if op.cli_name == name:
            return op
    raise UnknownOperationError(explain_unknown_operation(name), details={"operation": name})


def http_routes(scheme: AddressScheme) -> List[Tuple[Operation, str, Tuple[str, ...]]]:
    """All (operation, path template, path fields) served over HTTP."""
    return [
        (op, template, names)
        for op in OPERATIONS.values()
        for template, names in op.routes(scheme)
    ]
