"""Package provider protocol -- one implementation per source ecosystem."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Protocol

from pkgtap.files.download import Downloader
from pkgtap.models import InstallResult
from pkgtap.registry.base import RegistryPort


@dataclass(frozen=True, slots=True)
class ProviderContext:
    """Everything a provider needs from the outside world.

    ``packages_root`` holds one subdirectory per provider; ``bin_dir`` is the
    single directory users put on their PATH.
    """

    packages_root: Path
    bin_dir: Path
    registry: RegistryPort
    downloader: Downloader | None = None
    platform_target: str = ""

    def packages_dir(self, provider: str) -> Path:
        return self.packages_root / provider


class PackageProvider(Protocol):
    """Protocol for ecosystem-specific install logic.

    None of the coroutines raise: every outcome, including a missing tool or
    a network failure, is reported through InstallResult.
    """

    name: ClassVar[str]
    required_tools: ClassVar[tuple[str, ...]]
    description: ClassVar[str]

    async def is_available(self) -> bool:
        """Check if the external tool this provider drives is installed."""
        ...

    async def install(self, package_id: str, version: str = "latest") -> InstallResult:
        """Install ``package_id`` at ``version`` and expose its binaries."""
        ...

    async def uninstall(self, package_id: str) -> InstallResult:
        """Remove the package and any binaries it exposed."""
        ...

    async def latest_version(self, package_id: str) -> str | None:
        """Newest published version, or None if it cannot be determined."""
        ...


class ProviderResolverPort(Protocol):
    """Port for picking the provider that handles a given provider name."""

    def resolve(self, provider: str) -> PackageProvider:
        """Return the provider for ``provider``. Raises UnsupportedProviderError."""
        ...
