"""PyPI package provider.

Packages are installed with ``pip --prefix`` into a private tree. Console
scripts there cannot run on their own, so each exposed binary is a small
shell wrapper that puts the tree's site-packages on PYTHONPATH.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from pkgtap.ids import LATEST
from pkgtap.models import InstallResult
from pkgtap.providers._helpers import (
    command_result,
    first_available,
    first_line,
    link_failed,
    tool_missing,
)
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.bins import unlink_binaries, write_wrapper
from pkgtap.providers.subprocess import run_command

logger = logging.getLogger(__name__)

_INDEX_VERSION = re.compile(r"\(([^)]+)\)")


def _dist_name(package_id: str) -> str:
    return re.sub(r"[-_.]+", "_", package_id).lower()


@dataclass(frozen=True, slots=True)
class PypiProvider:
    ctx: ProviderContext

    name: ClassVar[str] = "pypi"
    required_tools: ClassVar[tuple[str, ...]] = ("pip3", "pip")
    description: ClassVar[str] = "Python package installer for PyPI packages"

    @property
    def root(self) -> Path:
        return self.ctx.packages_dir(self.name)

    def _site_packages(self) -> Path:
        candidates = sorted(self.root.glob("lib/python*/site-packages"))
        return candidates[-1] if candidates else self.root

    def _installed_version(self, package_id: str) -> str:
        wanted = _dist_name(package_id)
        for info in self._site_packages().glob("*.dist-info"):
            dist, _, version = info.name.removesuffix(".dist-info").rpartition("-")
            if _dist_name(dist) == wanted:
                return version
        return ""

    def _expose(self, package_id: str) -> None:
        entry = self.ctx.registry.get_by_source_id(f"{self.name}:{package_id}")
        commands = dict(entry.bin) or {package_id: package_id}
        scripts = self.root / "bin"
        env = {"PYTHONPATH": str(self._site_packages()), "PATH": str(scripts)}
        for bin_name, command in commands.items():
            if not command:
                continue
            script = scripts / command
            if not script.exists() and not entry.bin:
                continue
            target = str(script) if script.exists() else command
            write_wrapper(self.ctx.bin_dir, bin_name, target, env, owner=self.root / package_id)

    async def is_available(self) -> bool:
        return first_available("pip3", "pip") is not None

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        pip = first_available("pip3", "pip")
        if pip is None:
            return tool_missing(self.name, package_id, "pip3")

        self.root.mkdir(parents=True, exist_ok=True)
        spec = package_id if version == LATEST else f"{package_id}=={version}"
        returncode, stdout, stderr = await run_command(
            [pip, "install", spec, "--prefix", str(self.root), "--disable-pip-version-check"],
            cwd=self.root,
        )
        if returncode != 0:
            return command_result(self.name, package_id, "Installed", returncode, stdout, stderr)

        try:
            self._expose(package_id)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        installed = self._installed_version(package_id) or version
        return command_result(
            self.name, package_id, "Installed", 0, stdout, stderr, version=installed
        )

    async def uninstall(self, package_id: str) -> InstallResult:
        pip = first_available("pip3", "pip")
        if pip is None:
            return tool_missing(self.name, package_id, "pip3")

        unlink_binaries(self.ctx.bin_dir, self.root / package_id)
        returncode, stdout, stderr = await run_command(
            [pip, "uninstall", "-y", package_id, "--disable-pip-version-check"],
            env={"PYTHONPATH": str(self._site_packages())},
        )
        return command_result(self.name, package_id, "Removed", returncode, stdout, stderr)

    async def latest_version(self, package_id: str) -> str | None:
        pip = first_available("pip3", "pip")
        if pip is None:
            return None
        returncode, stdout, _ = await run_command(
            [pip, "index", "versions", package_id, "--disable-pip-version-check"], timeout=60.0
        )
        if returncode != 0:
            return None
        match = _INDEX_VERSION.search(first_line(stdout))
        return match.group(1) if match else None
