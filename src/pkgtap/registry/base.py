"""Port: read access to the package registry."""

from __future__ import annotations

from typing import Protocol

from pkgtap.models import RegistryEntry


class RegistryPort(Protocol):
    """Port for looking packages up in the registry catalog."""

    def load(self, force_refresh: bool = False) -> list[RegistryEntry]:
        """Return all entries sorted by name. Never raises for a missing or corrupt file."""
        ...

    def get_by_source_id(self, source_id: str) -> RegistryEntry:
        """Entry for a source id (either form), or a falsy empty entry."""
        ...

    def get_latest_version(self, source_id: str) -> str:
        """Latest published version, or "" when unknown."""
        ...

    def get_by_name_or_alias(self, name: str) -> RegistryEntry:
        """Entry whose name matches exactly, else whose aliases contain ``name``."""
        ...
