"""opam (OCaml) provider backed by a private local switch."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from pkgtap.ids import LATEST
from pkgtap.models import InstallResult
from pkgtap.providers._helpers import command_result, first_line, link_failed, tool_missing
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.bins import link_binary
from pkgtap.providers.subprocess import run_command

logger = logging.getLogger(__name__)

_COMPILER = "ocaml-base-compiler.5.1.0"


@dataclass(frozen=True, slots=True)
class OpamProvider:
    ctx: ProviderContext

    name: ClassVar[str] = "opam"
    required_tools: ClassVar[tuple[str, ...]] = ("opam",)
    description: ClassVar[str] = "OCaml package manager"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    @property
    def switch(self) -> Path:
        return self.root / "switch"

    async def _ensure_switch(self) -> tuple[int, str, str]:
        if (self.switch / "_opam").is_dir():
            return (0, "", "")
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("Creating opam switch at %s", self.switch)
        result = await run_command(
            ["opam", "switch", "create", str(self.switch), _COMPILER, "--no-switch", "--yes"],
            timeout=3600.0,
        )
        if result[0] != 0:
            result = await run_command(
                ["opam", "switch", "create", str(self.switch), "--no-switch", "--yes"],
                timeout=3600.0,
            )
        return result

    def _expose(self, package_id: str) -> None:
        entry = self.ctx.registry.get_by_source_id(f"{self.name}:{package_id}")
        switch_bin = self.switch / "_opam" / "bin"
        for bin_name, command in (dict(entry.bin) or {package_id: package_id}).items():
            executable = switch_bin / command
            if executable.is_file():
                link_binary(executable, self.ctx.bin_dir, bin_name)

    async def is_available(self) -> bool:
        return shutil.which("opam") is not None

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "opam")

        returncode, stdout, stderr = await self._ensure_switch()
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        spec = package_id if version == LATEST else f"{package_id}.{version}"
        returncode, stdout, stderr = await run_command(
            ["opam", "install", spec, "--switch", str(self.switch), "--yes", "--no-depexts"],
            timeout=3600.0,
        )
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        try:
            self._expose(package_id)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=version
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "opam")

        entry = self.ctx.registry.get_by_source_id(f"{self.name}:{package_id}")
        for bin_name in dict(entry.bin) or {package_id: package_id}:
            link = self.ctx.bin_dir / bin_name
            if link.is_symlink():
                link.unlink()
        returncode, stdout, stderr = await run_command(
            ["opam", "remove", package_id, "--switch", str(self.switch), "--yes"],
            timeout=600.0,
        )
        return command_result(self.name, package_id, "Removed", returncode, stdout, stderr)

    async def latest_version(self, package_id: str) -> str | None:
        returncode, stdout, _ = await run_command(
            ["opam", "show", package_id, "--field", "version"], timeout=60.0
        )
        if returncode != 0:
            return None
        return first_line(stdout).strip('"') or None
