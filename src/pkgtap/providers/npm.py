"""npm package provider."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from pkgtap.models import InstallResult
from pkgtap.providers._helpers import command_result, first_line, link_failed, tool_missing
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.bins import link_binary, unlink_binaries
from pkgtap.providers.subprocess import run_command

logger = logging.getLogger(__name__)


def _read_manifest(package_path: Path) -> dict:
    try:
        return json.loads((package_path / "package.json").read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}


def _manifest_bins(manifest: dict, package_name: str) -> dict[str, str]:
    """package.json ``bin`` may be a path (named after the package) or a name map."""
    bins = manifest.get("bin")
    if isinstance(bins, str):
        return {package_name.rsplit("/", 1)[-1]: bins}
    if isinstance(bins, dict):
        return {str(k): str(v) for k, v in bins.items()}
    return {}


@dataclass(frozen=True, slots=True)
class NpmProvider:
    """Installs npm packages into a private prefix and links their ``bin`` entries."""

    ctx: ProviderContext

    name: ClassVar[str] = "npm"
    required_tools: ClassVar[tuple[str, ...]] = ("npm",)
    description: ClassVar[str] = "Node.js package manager for JavaScript packages"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    def _package_path(self, package_id: str) -> Path:
        return self.root / "node_modules" / package_id

    async def is_available(self) -> bool:
        return shutil.which("npm") is not None

    async def install(self, package_id: str, version: str = "latest") -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "npm")

        self.root.mkdir(parents=True, exist_ok=True)
        spec = f"{package_id}@{version}"
        returncode, stdout, stderr = await run_command(
            ["npm", "install", "--prefix", str(self.root), spec, "--no-fund", "--no-audit"],
            cwd=self.root,
        )
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        package_path = self._package_path(package_id)
        manifest = _read_manifest(package_path)
        try:
            for bin_name, rel in _manifest_bins(manifest, package_id).items():
                link_binary(package_path / rel, self.ctx.bin_dir, bin_name)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)

        installed = str(manifest.get("version") or version)
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=installed
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "npm")

        self.root.mkdir(parents=True, exist_ok=True)
        unlink_binaries(self.ctx.bin_dir, self._package_path(package_id))
        returncode, stdout, stderr = await run_command(
            ["npm", "uninstall", "--prefix", str(self.root), package_id],
            cwd=self.root,
        )
        return command_result(self.name, package_id, "Removed", returncode, stdout, stderr)

    async def latest_version(self, package_id: str) -> str | None:
        returncode, stdout, _ = await run_command(
            ["npm", "view", package_id, "version"], timeout=60.0
        )
        if returncode != 0:
            return None
        return first_line(stdout) or None
