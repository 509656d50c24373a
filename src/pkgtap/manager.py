"""Package manager facade: the one object every outer surface talks to.

It glues the registry, the lock file and the providers together. Nothing
crosses this boundary as an exception except PathResolutionError, which
means there is no usable home directory at all.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from pkgtap.errors import InvalidPackageIdError, PathResolutionError, PkgTapError
from pkgtap.ids import (
    LATEST,
    looks_like_bare_name,
    normalize_package_id,
    parse_package_id_and_version,
    split_package_id,
)
from pkgtap.lockfile.store import LocalPackageStore
from pkgtap.models import (
    BatchResult,
    InstallRequest,
    InstallResult,
    LocalPackage,
    ProviderHealth,
    RegistryEntry,
)
from pkgtap.providers import resolver as provider_table
from pkgtap.providers.resolver import ProviderResolver
from pkgtap.registry.fetcher import RegistryFetcher
from pkgtap.registry.store import RegistryStore
from pkgtap.semver import is_greater

logger = logging.getLogger(__name__)


def _failed(source_id: str, message: str) -> InstallResult:
    provider = split_package_id(source_id)[0]
    return InstallResult(
        success=False,
        package_identifier=source_id,
        install_method=provider,
        message=message,
    )


def check_update_available(local_version: str, remote_version: str) -> tuple[bool, str]:
    """Return ``(True, remote_version)`` if the remote version is newer.

    A local version that is empty or ``latest`` always has an update to a
    concrete remote version.
    """
    if not remote_version:
        return False, ""
    if not local_version or local_version == LATEST:
        return True, remote_version
    if is_greater(local_version, remote_version):
        return True, remote_version
    return False, ""


@dataclass
class PackageManager:
    registry: RegistryStore
    local_store: LocalPackageStore
    resolver: ProviderResolver
    fetcher: RegistryFetcher | None = None

    # ── Single-package operations ─────────────────────────────

    async def install(self, source_id: str, version: str = LATEST) -> InstallResult:
        """Install one package and record it in the lock file on success."""
        canonical = normalize_package_id(source_id)
        provider_name, package_id = split_package_id(canonical)
        try:
            provider = self.resolver.resolve(provider_name)
            result = await provider.install(package_id, version or LATEST)
            if result.success:
                self.local_store.upsert(canonical, result.version or version or LATEST)
                logger.info("Installed %s@%s", canonical, result.version or version)
            else:
                logger.warning("Install of %s failed: %s", canonical, result.message)
            return result
        except PathResolutionError:
            raise
        except (PkgTapError, OSError) as exc:
            logger.warning("Install of %s failed: %s", canonical, exc)
            return _failed(canonical, str(exc))

    async def remove(self, source_id: str) -> InstallResult:
        """Uninstall one package and drop its lock record on success."""
        canonical = normalize_package_id(source_id)
        provider_name, package_id = split_package_id(canonical)
        try:
            provider = self.resolver.resolve(provider_name)
            result = await provider.uninstall(package_id)
            if result.success:
                if not self.local_store.remove(canonical):
                    logger.info("%s had no lock record", canonical)
            else:
                logger.warning("Removal of %s failed: %s", canonical, result.message)
            return result
        except PathResolutionError:
            raise
        except (PkgTapError, OSError) as exc:
            logger.warning("Removal of %s failed: %s", canonical, exc)
            return _failed(canonical, str(exc))

    async def update(self, source_id: str) -> InstallResult:
        """Install the newest version: provider's answer, else the registry's, else latest."""
        canonical = normalize_package_id(source_id)
        provider_name, package_id = split_package_id(canonical)
        try:
            provider = self.resolver.resolve(provider_name)
        except PkgTapError as exc:
            return _failed(canonical, str(exc))

        target = await provider.latest_version(package_id)
        if not target:
            target = self.registry.get_latest_version(canonical) or LATEST
        logger.info("Updating %s to %s", canonical, target)
        return await self.install(canonical, target)

    async def install_package(self, source_id: str, version: str = LATEST) -> bool:
        return (await self.install(source_id, version)).success

    async def remove_package(self, source_id: str) -> bool:
        return (await self.remove(source_id)).success

    async def update_package(self, source_id: str) -> bool:
        return (await self.update(source_id)).success

    # ── Batch operations ──────────────────────────────────────

    def resolve_bare_name(self, name: str) -> str | None:
        """Map a name without provider prefix to a registry source id.

        Exact registry name or alias wins; otherwise a package id that
        equals ``name`` case-insensitively, as long as exactly one provider
        publishes it.
        """
        entry = self.registry.get_by_name_or_alias(name)
        if entry:
            return entry.source.id
        exact = [
            match
            for match in self.registry.find_by_package_name(name)
            if split_package_id(match.source.id)[1].lower() == name.lower()
        ]
        if len(exact) == 1:
            return exact[0].source.id
        return None

    def _request(self, arg: str) -> InstallRequest:
        """Parse one user argument, resolving bare names through the registry.

        Raises:
            InvalidPackageIdError: If the argument is malformed or ambiguous.
        """
        base, version = parse_package_id_and_version(arg)
        if looks_like_bare_name(base):
            source_id = self.resolve_bare_name(base)
            if source_id is None:
                candidates = sorted(e.source.id for e in self.registry.find_by_package_name(base))
                hint = f" Candidates: {', '.join(candidates)}" if candidates else ""
                raise InvalidPackageIdError(f"No unique package found matching '{base}'.{hint}")
            provider, package_id = split_package_id(source_id)
            return InstallRequest(provider, package_id, version, display_id=arg)
        return InstallRequest.parse(arg)

    async def _run_batch(
        self,
        items: Iterable[str | InstallRequest],
        action: Callable[[InstallRequest], Awaitable[InstallResult]],
    ) -> BatchResult:
        succeeded = 0
        failures: list[str] = []
        results: list[InstallResult] = []
        for item in items:
            arg = item.display_id if isinstance(item, InstallRequest) else item
            try:
                request = item if isinstance(item, InstallRequest) else self._request(item)
            except PathResolutionError:
                raise
            except PkgTapError as exc:
                result = _failed(arg, str(exc))
            else:
                result = await action(request)
            results.append(result)
            if result.success:
                succeeded += 1
            else:
                failures.append(arg)
        return BatchResult(
            success_count=succeeded,
            failure_count=len(failures),
            failures=failures,
            results=results,
        )

    async def install_many(self, args: Iterable[str]) -> BatchResult:
        """Install each argument in order; one failure never stops the rest."""
        return await self._run_batch(args, lambda r: self.install(r.canonical_id, r.version))

    async def remove_many(self, args: Iterable[str]) -> BatchResult:
        return await self._run_batch(args, lambda r: self.remove(r.canonical_id))

    async def update_many(self, args: Iterable[str]) -> BatchResult:
        return await self._run_batch(args, lambda r: self.update(r.canonical_id))

    async def update_all(self) -> BatchResult:
        """Update every installed package whose registry version is newer."""
        outdated = [
            package.source_id
            for package in self.get_local_packages()
            if check_update_available(
                package.version, self.registry.get_latest_version(package.source_id)
            )[0]
        ]
        if not outdated:
            logger.info("All installed packages are up to date")
        return await self._run_batch(outdated, lambda r: self.update(r.canonical_id))

    async def sync_packages(self) -> BatchResult:
        """Reinstall every lock record at its recorded version."""
        requests = [
            InstallRequest(
                package.provider,
                package.package_id,
                package.version,
                display_id=package.source_id,
            )
            for package in self.get_local_packages()
        ]
        return await self._run_batch(requests, lambda r: self.install(r.canonical_id, r.version))

    # ── Queries ───────────────────────────────────────────────

    @staticmethod
    def is_supported_provider(name: str) -> bool:
        return provider_table.is_supported_provider(name)

    @staticmethod
    def available_providers() -> list[str]:
        return provider_table.available_providers()

    def get_registry_data(self, force_refresh: bool = False) -> list[RegistryEntry]:
        return self.registry.load(force_refresh)

    def get_latest_version(self, source_id: str) -> str:
        return self.registry.get_latest_version(source_id)

    def get_local_packages(self) -> list[LocalPackage]:
        """Always re-reads the lock file. A corrupt file reads as empty and is logged."""
        try:
            return self.local_store.load()
        except PkgTapError as exc:
            logger.error("Cannot read lock file: %s", exc)
            return []

    async def check_all_provider_health(self) -> list[ProviderHealth]:
        return await self.resolver.check_all_provider_health()

    async def download_and_unzip_registry(self, force: bool = False) -> bool:
        """Refresh the registry file, then drop the in-memory catalog."""
        if self.fetcher is None:
            logger.warning("No registry fetcher configured")
            return False
        try:
            await self.fetcher.download_and_unzip(force)
        except PkgTapError as exc:
            logger.error("Registry refresh failed: %s", exc)
            return False
        self.registry.load(force_refresh=True)
        return True
