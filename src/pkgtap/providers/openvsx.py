"""Open VSX provider: editor extensions downloaded as ``.vsix`` archives."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

import httpx

from pkgtap.errors import IllegalPathError, PkgTapError
from pkgtap.ids import LATEST
from pkgtap.models import InstallResult
from pkgtap.providers._helpers import command_result, failure, package_subdir
from pkgtap.providers.artifacts import expose_bins, fetch_artifact, reset_dir
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.bins import unlink_binaries

logger = logging.getLogger(__name__)

OPENVSX_API = "https://open-vsx.org/api"


def split_extension_id(package_id: str) -> tuple[str, str] | None:
    """``publisher.extension`` (or ``publisher/extension``) -> (publisher, extension)."""
    sep = "/" if "/" in package_id else "."
    publisher, _, extension = package_id.partition(sep)
    if not publisher or not extension:
        return None
    return publisher, extension


def vsix_url(publisher: str, extension: str, version: str) -> str:
    return (
        f"{OPENVSX_API}/{publisher}/{extension}/{version}"
        f"/file/{publisher}.{extension}-{version}.vsix"
    )


@dataclass(frozen=True, slots=True)
class OpenVsxProvider:
    ctx: ProviderContext

    name: ClassVar[str] = "openvsx"
    required_tools: ClassVar[tuple[str, ...]] = ()
    description: ClassVar[str] = "Open VSX extension registry"

    def package_dir(self, package_id: str) -> Path:
        return package_subdir(self.ctx.packages_dir(self.name), package_id)

    async def is_available(self) -> bool:
        return True

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        parts = split_extension_id(package_id)
        if parts is None:
            return failure(
                self.name,
                package_id,
                f"Invalid extension id '{package_id}': expected publisher.extension",
            )
        try:
            package_dir = self.package_dir(package_id)
        except IllegalPathError as exc:
            return failure(self.name, package_id, str(exc))
        if self.ctx.downloader is None:
            return failure(self.name, package_id, "No downloader configured")

        resolved = version
        if resolved == LATEST:
            resolved = await self.latest_version(package_id) or ""
        if not resolved:
            return failure(self.name, package_id, f"Cannot determine a version of {package_id}")

        publisher, extension = parts
        entry = self.ctx.registry.get_by_source_id(f"{self.name}:{package_id}")
        try:
            unlink_binaries(self.ctx.bin_dir, package_dir)
            reset_dir(package_dir)
            await fetch_artifact(
                self.ctx.downloader,
                vsix_url(publisher, extension, resolved),
                package_dir,
                f"{publisher}.{extension}-{resolved}.vsix",
            )
            expose_bins(entry, resolved, package_dir, package_dir, self.ctx.bin_dir)
        except (httpx.HTTPError, PkgTapError, OSError) as exc:
            return failure(
                self.name, package_id, f"Failed to install {package_id}@{resolved}: {exc}"
            )
        return command_result(self.name, package_id, "Installed", 0, "", "", version=resolved)

    async def uninstall(self, package_id: str) -> InstallResult:
        try:
            package_dir = self.package_dir(package_id)
        except IllegalPathError as exc:
            return failure(self.name, package_id, str(exc))
        unlink_binaries(self.ctx.bin_dir, package_dir)
        try:
            if package_dir.exists():
                shutil.rmtree(package_dir)
        except OSError as exc:
            return failure(self.name, package_id, f"Could not remove {package_dir}: {exc}")
        return command_result(self.name, package_id, "Removed", 0, "", "")

    async def latest_version(self, package_id: str) -> str | None:
        registered = self.ctx.registry.get_latest_version(f"{self.name}:{package_id}")
        if registered:
            return registered
        parts = split_extension_id(package_id)
        if parts is None or self.ctx.downloader is None:
            return None
        url = f"{OPENVSX_API}/{parts[0]}/{parts[1]}"
        try:
            response = await self.ctx.downloader.http.get(url)
            response.raise_for_status()
            version = response.json().get("version")
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.debug("Open VSX lookup failed for %s: %s", package_id, exc)
            return None
        return str(version) if version else None
