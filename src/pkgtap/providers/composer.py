"""Composer (PHP) provider."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from pkgtap.ids import LATEST
from pkgtap.models import InstallResult
from pkgtap.providers._helpers import (
    command_result,
    first_available,
    link_failed,
    relink_directory,
    tool_missing,
)
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.subprocess import run_command

_FLAGS = ["--no-interaction", "--no-plugins", "--no-scripts"]
_VERSIONS_LINE = re.compile(r"^versions\s*:\s*(.+)$", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class ComposerProvider:
    """Requires packages into a private Composer project and links ``vendor/bin``."""

    ctx: ProviderContext

    name: ClassVar[str] = "composer"
    required_tools: ClassVar[tuple[str, ...]] = ("composer",)
    description: ClassVar[str] = "Composer dependency manager for PHP packages"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    async def is_available(self) -> bool:
        return first_available("composer", "composer.phar") is not None

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        composer = first_available("composer", "composer.phar")
        if composer is None:
            return tool_missing(self.name, package_id, "composer")

        self.root.mkdir(parents=True, exist_ok=True)
        spec = package_id if version == LATEST else f"{package_id}:{version}"
        returncode, stdout, stderr = await run_command(
            [composer, "require", spec, *_FLAGS], timeout=600.0, cwd=self.root
        )
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        try:
            relink_directory(self.root / "vendor" / "bin", self.ctx.bin_dir, self.root)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=version
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        composer = first_available("composer", "composer.phar")
        if composer is None:
            return tool_missing(self.name, package_id, "composer")

        self.root.mkdir(parents=True, exist_ok=True)
        returncode, stdout, stderr = await run_command(
            [composer, "remove", package_id, *_FLAGS], timeout=600.0, cwd=self.root
        )
        relink_directory(self.root / "vendor" / "bin", self.ctx.bin_dir, self.root)
        return command_result(self.name, package_id, "Removed", returncode, stdout, stderr)

    async def latest_version(self, package_id: str) -> str | None:
        composer = first_available("composer", "composer.phar")
        if composer is None:
            return None
        returncode, stdout, _ = await run_command(
            [composer, "show", package_id, "--all", "--no-interaction"], timeout=60.0
        )
        if returncode != 0:
            return None
        match = _VERSIONS_LINE.search(stdout)
        if not match:
            return None
        newest = match.group(1).split(",")[0].strip().lstrip("* ").strip()
        return newest or None
