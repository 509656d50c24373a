"""LuaRocks provider."""

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
class LuarocksProvider:
    ctx: ProviderContext

    name: ClassVar[str] = "luarocks"
    required_tools: ClassVar[tuple[str, ...]] = ("luarocks",)
    description: ClassVar[str] = "LuaRocks package manager for Lua modules"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    async def is_available(self) -> bool:
        return shutil.which("luarocks") is not None

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "luarocks")

        self.root.mkdir(parents=True, exist_ok=True)
        cmd = ["luarocks", "install", package_id]
        if version != LATEST:
            cmd.append(version)
        cmd += ["--tree", str(self.root)]
        returncode, stdout, stderr = await run_command(cmd, timeout=600.0)
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        try:
            relink_directory(self.root / "bin", self.ctx.bin_dir, self.root)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=version
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "luarocks")

        returncode, stdout, stderr = await run_command(
            ["luarocks", "remove", package_id, "--tree", str(self.root)]
        )
        relink_directory(self.root / "bin", self.ctx.bin_dir, self.root)
        return command_result(self.name, package_id, "Removed", returncode, stdout, stderr)

    async def latest_version(self, package_id: str) -> str | None:
        returncode, stdout, _ = await run_command(
            ["luarocks", "search", package_id, "--porcelain"], timeout=60.0
        )
        if returncode != 0:
            return None
        for line in stdout.splitlines():
            fields = line.split()
            if len(fields) >= 2 and fields[0] == package_id:
                return fields[1]
        return None
