"""Fetch, unpack and expose downloaded artifacts for the download-based providers."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path, PurePosixPath

from pkgtap.errors import InstallError
from pkgtap.files.archive import extract_archive, is_archive
from pkgtap.files.download import Downloader
from pkgtap.models import AssetRule, DownloadRule, RegistryEntry
from pkgtap.providers.assets import resolve_bin_path, resolve_template
from pkgtap.providers.bins import find_file, link_binary

logger = logging.getLogger(__name__)


def reset_dir(path: Path) -> None:
    """Start a package directory from scratch so stale files never linger."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


async def fetch_artifact(
    downloader: Downloader,
    url: str,
    dest_dir: Path,
    filename: str,
    *,
    extract_to: Path | None = None,
) -> Path:
    """Download ``url`` into ``dest_dir/filename`` and unpack it if it is an archive.

    The archive itself is deleted after a successful unpack. Returns the
    directory (or single file) that holds the result.
    """
    artifact = dest_dir / filename
    logger.info("Downloading %s", url)
    await downloader.fetch_to_path(url, artifact)
    if artifact.stat().st_size == 0:
        raise InstallError(f"Downloaded {filename} is empty")
    if not is_archive(filename):
        artifact.chmod(0o755)
        return artifact
    unpacked = extract_archive(artifact, extract_to or dest_dir)
    if artifact.exists() and artifact != unpacked:
        artifact.unlink()
    return unpacked


def _declared_bins(
    entry: RegistryEntry, asset: AssetRule | None, download: DownloadRule | None
) -> dict[str, str]:
    if entry.bin:
        return dict(entry.bin)
    if asset is not None and isinstance(asset.bin, dict):
        return dict(asset.bin)
    if asset is not None and isinstance(asset.bin, str) and asset.bin:
        return {PurePosixPath(asset.bin).name: asset.bin}
    if download is not None and download.bin:
        return {PurePosixPath(download.bin).name: download.bin}
    return {}


def expose_bins(
    entry: RegistryEntry,
    version: str,
    search_root: Path,
    package_dir: Path,
    bin_dir: Path,
    *,
    asset: AssetRule | None = None,
    download: DownloadRule | None = None,
) -> list[str]:
    """Link every declared binary, falling back to a search by file name.

    Returns the names that were linked; a declared binary that cannot be
    found is logged and skipped.
    """
    linked: list[str] = []
    for bin_name, template in _declared_bins(entry, asset, download).items():
        rel = resolve_template(
            resolve_bin_path(template, bin_name, asset=asset, download=download), version
        )
        if not rel:
            continue
        candidate = search_root / rel
        if not candidate.is_file():
            found = find_file(package_dir, PurePosixPath(rel).name)
            if found is None:
                logger.warning("Binary %s (%s) not found under %s", bin_name, rel, package_dir)
                continue
            candidate = found
        link_binary(candidate, bin_dir, bin_name)
        linked.append(bin_name)
    return linked
