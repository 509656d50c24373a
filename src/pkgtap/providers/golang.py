"""Go module provider (``go install`` with a private GOBIN)."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from pkgtap.models import InstallResult
from pkgtap.providers._helpers import (
    command_result,
    failure,
    link_failed,
    relink_directory,
    tool_missing,
)
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.subprocess import run_command

logger = logging.getLogger(__name__)

_MAJOR_SUFFIX = re.compile(r"^v\d+$")


def binary_name(package_id: str) -> str:
    """Executable ``go install`` produces: last path element, skipping ``/vN``."""
    parts = [p for p in package_id.split("/") if p]
    while len(parts) > 1 and _MAJOR_SUFFIX.match(parts[-1]):
        parts.pop()
    return parts[-1] if parts else package_id


@dataclass(frozen=True, slots=True)
class GolangProvider:
    ctx: ProviderContext

    name: ClassVar[str] = "golang"
    required_tools: ClassVar[tuple[str, ...]] = ("go",)
    description: ClassVar[str] = "Go toolchain for Go modules"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    async def is_available(self) -> bool:
        return shutil.which("go") is not None

    async def install(self, package_id: str, version: str = "latest") -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "go")

        gobin = self.root / "bin"
        gobin.mkdir(parents=True, exist_ok=True)
        returncode, stdout, stderr = await run_command(
            ["go", "install", f"{package_id}@{version}"],
            env={"GOBIN": str(gobin)},
            cwd=self.root,
        )
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        try:
            relink_directory(gobin, self.ctx.bin_dir, self.root)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=version
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        gobin = self.root / "bin"
        binary = gobin / binary_name(package_id)
        try:
            binary.unlink(missing_ok=True)
        except OSError as exc:
            return failure(self.name, package_id, f"Could not remove {binary}: {exc}")
        relink_directory(gobin, self.ctx.bin_dir, self.root)
        return command_result(self.name, package_id, "Removed", 0, "", "")

    async def latest_version(self, package_id: str) -> str | None:
        returncode, stdout, _ = await run_command(
            ["go", "list", "-m", "-versions", package_id], timeout=60.0
        )
        if returncode != 0:
            return None
        fields = stdout.split()
        return fields[-1] if len(fields) > 1 else None
