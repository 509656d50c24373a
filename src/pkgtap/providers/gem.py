"""RubyGems provider."""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from pkgtap.ids import LATEST
from pkgtap.models import InstallResult
from pkgtap.providers._helpers import command_result, link_failed, tool_missing
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.bins import unlink_binaries, write_wrapper
from pkgtap.providers.subprocess import run_command


@dataclass(frozen=True, slots=True)
class GemProvider:
    ctx: ProviderContext

    name: ClassVar[str] = "gem"
    required_tools: ClassVar[tuple[str, ...]] = ("gem",)
    description: ClassVar[str] = "RubyGems package manager for Ruby gems"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    def _expose(self, package_id: str) -> None:
        entry = self.ctx.registry.get_by_source_id(f"{self.name}:{package_id}")
        gem_bin = self.root / "bin"
        env = {"GEM_PATH": str(self.root), "PATH": str(gem_bin)}
        for bin_name, command in (dict(entry.bin) or {package_id: package_id}).items():
            executable = gem_bin / command
            if not executable.exists():
                continue
            write_wrapper(
                self.ctx.bin_dir, bin_name, str(executable), env, owner=self.root / package_id
            )

    async def is_available(self) -> bool:
        return shutil.which("gem") is not None

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "gem")

        self.root.mkdir(parents=True, exist_ok=True)
        cmd = [
            "gem", "install", package_id,
            "--install-dir", str(self.root),
            "--no-document", "--no-user-install",
        ]  # fmt: skip
        if version != LATEST:
            cmd += ["--version", version]
        returncode, stdout, stderr = await run_command(cmd, timeout=600.0)
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        try:
            self._expose(package_id)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        installed = version
        match = re.search(rf"Successfully installed {re.escape(package_id)}-(\S+)", stdout)
        if match:
            installed = match.group(1)
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=installed
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "gem")

        unlink_binaries(self.ctx.bin_dir, self.root / package_id)
        returncode, stdout, stderr = await run_command(
            [
                "gem", "uninstall", package_id,
                "--install-dir", str(self.root),
                "--all", "--executables", "--ignore-dependencies",
            ]  # fmt: skip
        )
        return command_result(self.name, package_id, "Removed", returncode, stdout, stderr)

    async def latest_version(self, package_id: str) -> str | None:
        returncode, stdout, _ = await run_command(
            ["gem", "search", f"^{package_id}$", "--remote"], timeout=60.0
        )
        if returncode != 0:
            return None
        match = re.search(rf"^{re.escape(package_id)} \(([^),\s]+)", stdout, re.MULTILINE)
        return match.group(1) if match else None
