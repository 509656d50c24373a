"""Generic provider: plain URL downloads declared by registry download rules."""

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
from pkgtap.providers.assets import resolve_template, select_download_rule
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.bins import unlink_binaries

logger = logging.getLogger(__name__)

_ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".tar", ".zip")


def _unpack_dir_name(filename: str) -> str:
    lowered = filename.lower()
    for suffix in _ARCHIVE_SUFFIXES:
        if lowered.endswith(suffix):
            return filename[: -len(suffix)]
    return filename


@dataclass(frozen=True, slots=True)
class GenericProvider:
    """Downloads every file of the matching rule into ``<package>/extracted``.

    Archives are unpacked into a directory named after the archive and then
    deleted. Versions come from the registry only.
    """

    ctx: ProviderContext

    name: ClassVar[str] = "generic"
    required_tools: ClassVar[tuple[str, ...]] = ()
    description: ClassVar[str] = "Direct downloads described by the registry"

    def package_dir(self, package_id: str) -> Path:
        return package_subdir(self.ctx.packages_dir(self.name), package_id)

    async def is_available(self) -> bool:
        return True

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        try:
            package_dir = self.package_dir(package_id)
        except IllegalPathError as exc:
            return failure(self.name, package_id, str(exc))
        entry = self.ctx.registry.get_by_source_id(f"{self.name}:{package_id}")
        if not entry.source.downloads:
            return failure(self.name, package_id, f"No download information for {package_id}")
        rule = select_download_rule(entry.source.downloads, self.ctx.platform_target)
        if rule is None:
            return failure(
                self.name,
                package_id,
                f"No download of {package_id} matches platform {self.ctx.platform_target}",
            )
        if self.ctx.downloader is None:
            return failure(self.name, package_id, "No downloader configured")

        resolved = version if version and version != LATEST else (entry.version or LATEST)
        extract_dir = package_dir / "extracted"
        try:
            unlink_binaries(self.ctx.bin_dir, package_dir)
            reset_dir(package_dir)
            extract_dir.mkdir()
            for filename, url in rule.files.items():
                stem = _unpack_dir_name(filename)
                target = extract_dir / stem if stem != filename else None
                await fetch_artifact(
                    self.ctx.downloader,
                    resolve_template(url, resolved),
                    extract_dir,
                    filename,
                    extract_to=target,
                )
            linked = expose_bins(
                entry, resolved, extract_dir, package_dir, self.ctx.bin_dir, download=rule
            )
        except (httpx.HTTPError, PkgTapError, OSError) as exc:
            return failure(
                self.name, package_id, f"Failed to install {package_id}@{resolved}: {exc}"
            )

        logger.info("Installed %s@%s (%s)", package_id, resolved, ", ".join(linked) or "no bins")
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
        return self.ctx.registry.get_latest_version(f"{self.name}:{package_id}") or None
