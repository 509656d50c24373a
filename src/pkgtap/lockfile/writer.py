"""Atomic, locked writes to the pkgtap lock file."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import sys
import tempfile
import threading
from collections.abc import Iterator
from pathlib import Path

from pkgtap.errors import LockfileWriteError
from pkgtap.ids import normalize_package_id
from pkgtap.models import LocalPackage

if sys.platform == "win32":
    import msvcrt

    def _lock_exclusive(lock_fd) -> None:
        msvcrt.locking(lock_fd.fileno(), msvcrt.LK_LOCK, 1)

    def _unlock(lock_fd) -> None:
        msvcrt.locking(lock_fd.fileno(), msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _lock_exclusive(lock_fd) -> None:
        fcntl.flock(lock_fd, fcntl.LOCK_EX)

    def _unlock(lock_fd) -> None:
        fcntl.flock(lock_fd, fcntl.LOCK_UN)


logger = logging.getLogger(__name__)

_path_locks: dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _get_path_lock(path: Path) -> threading.Lock:
    """Get or create a per-path threading lock for concurrent safety."""
    key = str(path.resolve())
    with _path_locks_guard:
        if key not in _path_locks:
            _path_locks[key] = threading.Lock()
        return _path_locks[key]


def _packages_to_dict(packages: list[LocalPackage]) -> dict:
    return {
        "packages": [
            {"sourceId": normalize_package_id(p.source_id), "version": p.version}
            for p in packages
        ]
    }


def _atomic_write(path: Path, data: dict) -> None:
    """Write ``data`` as JSON via tempfile + os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = None
    tmp_path: str | None = None
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), suffix=".tmp", prefix=".pkgtap-lock_"
        )
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        os.write(fd, content.encode("utf-8"))
        os.close(fd)
        fd = None
        os.replace(tmp_path, str(path))
        tmp_path = None
    except OSError as exc:
        raise LockfileWriteError(f"Failed to write lock file {path}: {exc}") from exc
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)


@contextlib.contextmanager
def locked(path: Path) -> Iterator[None]:
    """Hold the lock file exclusively for a read-modify-write cycle.

    Uses both a per-path threading lock (for in-process concurrency)
    and an OS file lock on a sidecar file (for cross-process concurrency):
    fcntl.flock on POSIX, msvcrt.locking on Windows.
    """
    lock = _get_path_lock(path)
    with lock:
        lock_file_path = path.with_name(path.name + ".lck")
        try:
            lock_file_path.parent.mkdir(parents=True, exist_ok=True)
            lock_fd = open(lock_file_path, "w")  # noqa: SIM115
        except OSError as exc:
            raise LockfileWriteError(f"Cannot lock {path}: {exc}") from exc
        with lock_fd:
            _lock_exclusive(lock_fd)
            try:
                yield
            finally:
                _unlock(lock_fd)


def write_lockfile(path: Path, packages: list[LocalPackage]) -> None:
    """Replace the whole lock file with ``packages`` (canonical ids only).

    Callers that read first must hold :func:`locked` around both steps.
    """
    _atomic_write(path, _packages_to_dict(packages))
    logger.debug("Wrote %d package record(s) to %s", len(packages), path)
