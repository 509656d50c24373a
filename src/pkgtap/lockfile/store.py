"""Installed-package ledger backed by the lock file."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pkgtap import paths
from pkgtap.ids import normalize_package_id
from pkgtap.lockfile.reader import read_lockfile
from pkgtap.lockfile.writer import locked, write_lockfile
from pkgtap.models import LocalPackage


@dataclass
class LocalPackageStore:
    """Read-through access to the lock file.

    Nothing is cached between calls, so a change made by another process is
    always seen. Mutations re-read, modify and rewrite the file while holding
    the lock.
    """

    path_factory: Callable[[], Path] = paths.lockfile_path

    @property
    def path(self) -> Path:
        return self.path_factory()

    def load(self) -> list[LocalPackage]:
        return read_lockfile(self.path)

    def upsert(self, source_id: str, version: str) -> None:
        """Set the installed version for ``source_id``, adding a record if needed."""
        canonical = normalize_package_id(source_id)
        path = self.path
        with locked(path):
            packages = read_lockfile(path)
            for index, package in enumerate(packages):
                if package.source_id == canonical:
                    packages[index] = LocalPackage(source_id=canonical, version=version)
                    break
            else:
                packages.append(LocalPackage(source_id=canonical, version=version))
            write_lockfile(path, packages)

    def remove(self, source_id: str) -> bool:
        """Drop the record for ``source_id``. Returns False if there was none."""
        canonical = normalize_package_id(source_id)
        path = self.path
        with locked(path):
            packages = read_lockfile(path)
            for index, package in enumerate(packages):
                if package.source_id == canonical:
                    del packages[index]
                    write_lockfile(path, packages)
                    return True
        return False

    def get_by_source_id(self, source_id: str) -> LocalPackage | None:
        canonical = normalize_package_id(source_id)
        for package in self.load():
            if package.source_id == canonical:
                return package
        return None

    def is_installed(self, source_id: str) -> bool:
        return self.get_by_source_id(source_id) is not None

    def get_for_provider(self, provider: str) -> list[LocalPackage]:
        return [p for p in self.load() if p.provider == provider]
