# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Per-resource mutual exclusion for mutating backup operations.

Two operations on the same backup, or two operations touching the shadow
directory, must never overlap. Engine calls can run for hours, so a
request for a held resource fails immediately with ResourceBusyError
instead of queueing.

Within one process an asyncio.Lock guards each resource. With a lock
directory, every held resource is also an exclusive ``flock`` on a file
in that directory, which excludes other CLI runs and server processes.
"""

import asyncio
import fcntl
from contextlib import asynccontextmanager
from pathlib import Path
from typing import IO, AsyncIterator, Dict, Iterable, List
from urllib.parse import quote

import structlog

from chbackup_agent.errors import explain_resource_busy
from chbackup_agent.exceptions import ConfigLoadError, ResourceBusyError

logger = structlog.get_logger()


class ResourceLocks:
    """Non-blocking locks keyed by resource name, optionally backed by lock files."""

    def __init__(self, lock_dir: Path | str | None = None) -> None:
        self.lock_dir = Path(lock_dir) if lock_dir is not None else None
        self._locks: Dict[str, asyncio.Lock] = {}
        self._files: Dict[str, IO[str]] = {}

    def lock_path(self, key: str) -> Path:
        """Lock file of one resource; keys are quoted into a flat file name."""
        if self.lock_dir is None:
            raise ValueError("ResourceLocks has no lock directory")
        return self.lock_dir / f"{quote(key, safe='')}.lock"

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def held(self) -> List[str]:
        return sorted(key for key, lock in self._locks.items() if lock.locked())

    def _busy(self, key: str) -> ResourceBusyError:
        logger.warning("resource_busy", resource=key)
        return ResourceBusyError(explain_resource_busy(key), details={"resource": key})

    def _lock_file(self, key: str) -> None:
        path = self.lock_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(path, "a")
        except OSError as exc:
            raise ConfigLoadError(
                f"Cannot open lock file {str(path)!r}: {exc}. Check api.lock_dir.",
                details={"lock_dir": str(self.lock_dir)},
            ) from exc
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.close()
            raise self._busy(key) from None
        except OSError:
            handle.close()
            raise
        self._files[key] = handle

    def _unlock_file(self, key: str) -> None:
        handle = self._files.pop(key, None)
        if handle is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """
        Hold every key for the duration of the block.

        Keys are taken in sorted order. If any key is already held, here or
        by another process, the keys acquired so far are released and
        ResourceBusyError is raised.
        """
        acquired: List[str] = []
        try:
            for key in sorted(set(keys)):
                lock = self._locks.setdefault(key, asyncio.Lock())
                if lock.locked():
                    raise self._busy(key)
                # Uncontended acquire completes without yielding
                await lock.acquire()
                acquired.append(key)
                if self.lock_dir is not None:
                    self._lock_file(key)
            yield
        finally:
            for key in reversed(acquired):
                self._unlock_file(key)
                self._locks[key].release()
                # Locks never have waiters; drop released ones
                del self._locks[key]
