"""NuGet provider (.NET global tools installed with ``--tool-path``)."""

from __future__ import annotations

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


@dataclass(frozen=True, slots=True)
class NugetProvider:
    ctx: ProviderContext

    name: ClassVar[str] = "nuget"
    required_tools: ClassVar[tuple[str, ...]] = ("dotnet",)
    description: ClassVar[str] = ".NET CLI for NuGet tool packages"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    async def is_available(self) -> bool:
        return shutil.which("dotnet") is not None

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "dotnet")

        self.root.mkdir(parents=True, exist_ok=True)
        cmd = ["dotnet", "tool", "install", package_id, "--tool-path", str(self.root)]
        if version != LATEST:
            cmd += ["--version", version]
        returncode, stdout, stderr = await run_command(cmd, timeout=600.0, cwd=self.root)
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        # Tool shims live directly in the tool path, next to the hidden .store dir.
        try:
            relink_directory(self.root, self.ctx.bin_dir, self.root)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=version
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "dotnet")

        self.root.mkdir(parents=True, exist_ok=True)
        returncode, stdout, stderr = await run_command(
            ["dotnet", "tool", "uninstall", package_id, "--tool-path", str(self.root)],
            cwd=self.root,
        )
        relink_directory(self.root, self.ctx.bin_dir, self.root)
        return command_result(self.name, package_id, "Removed", returncode, stdout, stderr)

    async def latest_version(self, package_id: str) -> str | None:
        returncode, stdout, _ = await run_command(
            ["dotnet", "tool", "search", package_id], timeout=60.0
        )
        if returncode != 0:
            return None
        for line in stdout.splitlines():
            fields = line.split()
            if len(fields) >= 2 and fields[0].lower() == package_id.lower():
                return fields[1]
        return None
