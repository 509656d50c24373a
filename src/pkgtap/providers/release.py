"""Release-asset providers for GitHub, GitLab and Codeberg.

When the registry lists asset rules, the asset for the running platform is
downloaded from the project's releases and unpacked into a private package
directory. Packages without asset rules are cloned with git instead and
checked out at the requested tag (or the newest tag, or the default branch).
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar
from urllib.parse import quote

import httpx

from pkgtap.errors import IllegalPathError, PkgTapError
from pkgtap.ids import LATEST
from pkgtap.models import InstallResult, RegistryEntry
from pkgtap.providers._helpers import (
    command_result,
    failure,
    first_line,
    link_failed,
    package_subdir,
    tool_missing,
)
from pkgtap.providers.artifacts import expose_bins, fetch_artifact, reset_dir
from pkgtap.providers.assets import select_asset_file, select_asset_rule, split_asset_file
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.bins import unlink_binaries
from pkgtap.providers.subprocess import run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Release:
    tag: str
    assets: dict[str, str]


@dataclass(frozen=True, slots=True)
class ReleaseHost:
    """URL scheme and API dialect of one forge."""

    web_base: str
    api_base: str
    dialect: str  # "github" | "gitlab" | "gitea"

    def clone_url(self, repo: str) -> str:
        return f"{self.web_base}/{repo}.git"

    def latest_release_url(self, repo: str) -> str:
        if self.dialect == "gitlab":
            return f"{self.api_base}/projects/{quote(repo, safe='')}/releases"
        return f"{self.api_base}/repos/{repo}/releases/latest"

    def tag_release_url(self, repo: str, tag: str) -> str:
        if self.dialect == "gitlab":
            project = quote(repo, safe="")
            return f"{self.api_base}/projects/{project}/releases/{quote(tag, safe='')}"
        return f"{self.api_base}/repos/{repo}/releases/tags/{tag}"

    def download_url(self, repo: str, tag: str, filename: str) -> str:
        if self.dialect == "gitlab":
            return f"{self.web_base}/{repo}/-/releases/{tag}/downloads/{filename}"
        return f"{self.web_base}/{repo}/releases/download/{tag}/{filename}"

    def parse_release(self, data: object) -> Release | None:
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict) or not data.get("tag_name"):
            return None
        assets: dict[str, str] = {}
        if self.dialect == "gitlab":
            links = (data.get("assets") or {}).get("links") or []
            for link in links:
                url = link.get("direct_asset_url") or link.get("url") or ""
                if link.get("name"):
                    assets[link["name"]] = url
        else:
            for asset in data.get("assets") or []:
                if asset.get("name"):
                    assets[asset["name"]] = asset.get("browser_download_url", "")
        return Release(tag=str(data["tag_name"]), assets=assets)


GITHUB = ReleaseHost("https://github.com", "https://api.github.com", "github")
GITLAB = ReleaseHost("https://gitlab.com", "https://gitlab.com/api/v4", "gitlab")
CODEBERG = ReleaseHost("https://codeberg.org", "https://codeberg.org/api/v1", "gitea")


@dataclass(frozen=True, slots=True)
class ReleaseProvider:
    ctx: ProviderContext

    name: ClassVar[str] = ""
    host: ClassVar[ReleaseHost] = GITHUB
    required_tools: ClassVar[tuple[str, ...]] = ("git",)
    description: ClassVar[str] = ""

    def package_dir(self, package_id: str) -> Path:
        return package_subdir(self.ctx.packages_dir(self.name), package_id)

    def _entry(self, package_id: str) -> RegistryEntry:
        return self.ctx.registry.get_by_source_id(f"{self.name}:{package_id}")

    async def _get_release(self, url: str) -> Release | None:
        if self.ctx.downloader is None:
            return None
        try:
            response = await self.ctx.downloader.http.get(
                url, headers={"Accept": "application/json"}
            )
            response.raise_for_status()
            return self.host.parse_release(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Release lookup failed for %s: %s", url, exc)
            return None

    async def is_available(self) -> bool:
        return shutil.which("git") is not None

    async def install(self, package_id: str, version: str = LATEST) -> InstallResult:
        try:
            self.package_dir(package_id)
        except IllegalPathError as exc:
            return failure(self.name, package_id, str(exc))
        entry = self._entry(package_id)
        if not entry.source.assets:
            return await self._install_from_git(package_id, version, entry)
        return await self._install_from_release(package_id, version, entry)

    # ── Release assets ────────────────────────────────────────

    async def _install_from_release(
        self, package_id: str, version: str, entry: RegistryEntry
    ) -> InstallResult:
        if self.ctx.downloader is None:
            return failure(self.name, package_id, "No downloader configured")

        rule = select_asset_rule(entry.source.assets, self.ctx.platform_target)
        if rule is None:
            return failure(
                self.name,
                package_id,
                f"No release asset of {package_id} matches platform {self.ctx.platform_target}",
            )

        release: Release | None = None
        tag = version
        if tag == LATEST:
            tag = entry.version
            if not tag:
                release = await self._get_release(self.host.latest_release_url(package_id))
                tag = release.tag if release else ""
        if not tag:
            return failure(self.name, package_id, f"Cannot determine a version of {package_id}")
        if release is None:
            release = await self._get_release(self.host.tag_release_url(package_id, tag))

        spec = select_asset_file(rule.file, tag, release.assets if release else None)
        if spec is None:
            return failure(
                self.name,
                package_id,
                f"Release {tag} of {package_id} has none of {list(rule.file.values)}",
            )
        filename, subdir = split_asset_file(spec)
        url = (release.assets.get(filename) if release else "") or self.host.download_url(
            package_id, tag, filename
        )

        package_dir = self.package_dir(package_id)
        try:
            unlink_binaries(self.ctx.bin_dir, package_dir)
            reset_dir(package_dir)
            await fetch_artifact(self.ctx.downloader, url, package_dir, filename)
            linked = expose_bins(
                entry,
                tag,
                package_dir / subdir if subdir else package_dir,
                package_dir,
                self.ctx.bin_dir,
                asset=rule,
            )
        except (httpx.HTTPError, PkgTapError, OSError) as exc:
            return failure(self.name, package_id, f"Failed to install {package_id}@{tag}: {exc}")

        return InstallResult(
            success=True,
            package_identifier=package_id,
            install_method=self.name,
            message=(
                f"Installed {package_id}@{tag} from {filename} "
                f"({', '.join(linked) or 'no binaries'})."
            ),
            version=tag,
        )

    # ── git fallback ──────────────────────────────────────────

    async def _install_from_git(
        self, package_id: str, version: str, entry: RegistryEntry
    ) -> InstallResult:
        if not await self.is_available():
            return tool_missing(self.name, package_id, "git")

        package_dir = self.package_dir(package_id)
        try:
            unlink_binaries(self.ctx.bin_dir, package_dir)
            reset_dir(package_dir)
        except OSError as exc:
            return failure(self.name, package_id, f"Cannot prepare {package_dir}: {exc}")

        returncode, stdout, stderr = await run_command(
            ["git", "clone", "--quiet", self.host.clone_url(package_id), str(package_dir)],
            timeout=600.0,
        )
        if returncode != 0:
            return command_result(self.name, package_id, "Cloned", returncode, stdout, stderr)

        ref = version
        if ref == LATEST:
            code, out, _ = await run_command(
                ["git", "-C", str(package_dir), "describe", "--tags", "--abbrev=0"]
            )
            ref = first_line(out) if code == 0 else ""

        if ref:
            returncode, stdout, stderr = await run_command(
                ["git", "-C", str(package_dir), "checkout", "--quiet", ref]
            )
            if returncode != 0:
                return command_result(
                    self.name, package_id, "Checked out", returncode, stdout, stderr
                )
        else:
            logger.info("%s has no tags, staying on the default branch", package_id)

        resolved = ref or LATEST
        try:
            expose_bins(entry, resolved, package_dir, package_dir, self.ctx.bin_dir)
        except OSError as exc:
            return link_failed(self.name, package_id, exc)
        return command_result(self.name, package_id, "Installed", 0, "", "", version=resolved)

    # ── Removal / versions ────────────────────────────────────

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
        release = await self._get_release(self.host.latest_release_url(package_id))
        return release.tag if release else None


@dataclass(frozen=True, slots=True)
class GitHubProvider(ReleaseProvider):
    name: ClassVar[str] = "github"
    host: ClassVar[ReleaseHost] = GITHUB
    description: ClassVar[str] = "GitHub releases (git is used for repositories without assets)"


@dataclass(frozen=True, slots=True)
class GitLabProvider(ReleaseProvider):
    name: ClassVar[str] = "gitlab"
    host: ClassVar[ReleaseHost] = GITLAB
    description: ClassVar[str] = "GitLab releases (git is used for repositories without assets)"


@dataclass(frozen=True, slots=True)
class CodebergProvider(ReleaseProvider):
    name: ClassVar[str] = "codeberg"
    host: ClassVar[ReleaseHost] = CODEBERG
    description: ClassVar[str] = "Codeberg releases (git is used for repositories without assets)"
