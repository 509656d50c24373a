"""In-memory registry catalog loaded from the unpacked registry file."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from pkgtap import paths
from pkgtap.errors import RegistryParseError
from pkgtap.ids import normalize_package_id, split_package_id
from pkgtap.models import RegistryEntry
from pkgtap.registry.parser import parse_registry

logger = logging.getLogger(__name__)


def read_registry_file(path: Path | None = None) -> bytes:
    """Read the raw registry document from disk."""
    return (path or paths.registry_file_path()).read_bytes()


@dataclass
class RegistryStore:
    """The registry catalog, constructed once and shared by every consumer.

    The parsed catalog is cached until ``load(force_refresh=True)``. A read
    or parse failure degrades to an empty catalog and is not cached, so the
    next call tries again.
    """

    reader: Callable[[], bytes] = read_registry_file
    _entries: list[RegistryEntry] | None = field(default=None, init=False, repr=False)

    def load(self, force_refresh: bool = False) -> list[RegistryEntry]:
        if self._entries is not None and not force_refresh:
            return self._entries

        try:
            entries = parse_registry(self.reader())
        except OSError as exc:
            logger.warning("Registry file unavailable, continuing without it: %s", exc)
            self._entries = None
            return []
        except RegistryParseError as exc:
            logger.warning("Registry file is corrupt, continuing without it: %s", exc)
            self._entries = None
            return []

        self._entries = entries
        return entries

    def get_by_source_id(self, source_id: str) -> RegistryEntry:
        wanted = normalize_package_id(source_id)
        for entry in self.load():
            if entry.source.id == wanted:
                return entry
        return RegistryEntry.empty()

    def get_latest_version(self, source_id: str) -> str:
        return self.get_by_source_id(source_id).version

    def get_by_name_or_alias(self, name: str) -> RegistryEntry:
        entries = self.load()
        for entry in entries:
            if entry.name == name:
                return entry
        for entry in entries:
            if name in entry.aliases:
                return entry
        return RegistryEntry.empty()

    def find_by_package_name(self, query: str) -> list[RegistryEntry]:
        """Entries whose package-id segment contains ``query``, case-insensitively."""
        needle = query.lower()
        if not needle:
            return []
        return [
            entry
            for entry in self.load()
            if needle in split_package_id(entry.source.id)[1].lower()
        ]
