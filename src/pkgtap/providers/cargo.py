"""Rust crate provider (``cargo install`` into a private CARGO_HOME)."""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from pkgtap.ids import LATEST
from pkgtap.models import InstallResult
from pkgtap.providers._helpers import (
    command_result,
    link_failed,
    relink_directory,
    tool_missing,
)
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.subprocess import run_command

_SEARCH_LINE = re.compile(r'^(\S+)\s*=\s*"([^"]+)"')


@dataclass(frozen=True, slots=True)
class CargoProvider:
    ctx: ProviderContext

    name: ClassVar[str] = "cargo"
    required_tools: ClassVar[tuple[str, ...]] = ("cargo",)
    description: ClassVar[str] = "Rust package manager for crates"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    def _env(self) -> dict[str, str]:
        return {"CARGO_HOME": str(self.root)}

    async def is_available(self) -> bool:
        return shutil.which("cargo") is not None

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "cargo")

        self.root.mkdir(parents=True, exist_ok=True)
        cmd = ["cargo", "install", package_id, "--force", "--locked"]
        if version != LATEST:
            cmd += ["--version", version]
        returncode, stdout, stderr = await run_command(
            cmd, env=self._env(), timeout=1800.0, cwd=self.root
        )
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        try:
            relink_directory(self.root / "bin", self.ctx.bin_dir, self.root)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        installed = version
        if version == LATEST:
            installed = await self.latest_version(package_id) or version
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=installed
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "cargo")

        self.root.mkdir(parents=True, exist_ok=True)
        returncode, stdout, stderr = await run_command(
            ["cargo", "uninstall", package_id], env=self._env(), cwd=self.root
        )
        relink_directory(self.root / "bin", self.ctx.bin_dir, self.root)
        return command_result(self.name, package_id, "Removed", returncode, stdout, stderr)

    async def latest_version(self, package_id: str) -> str | None:
        returncode, stdout, _ = await run_command(
            ["cargo", "search", package_id, "-q", "--limit", "10"], timeout=60.0
        )
        if returncode != 0:
            return None
        for line in stdout.splitlines():
            match = _SEARCH_LINE.match(line.strip())
            if match and match.group(1) == package_id:
                return match.group(2)
        return None
