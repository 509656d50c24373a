"""Refresh the on-disk registry from its published zip bundle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from pkgtap import paths
from pkgtap.errors import ArchiveError, RegistryError
from pkgtap.files.archive import extract_zip
from pkgtap.files.download import Downloader
from pkgtap.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class RegistryFetcher:
    """Downloads the registry archive into the cache root and unpacks it."""

    downloader: Downloader
    settings: Settings

    async def download_and_unzip(
        self,
        force: bool = False,
        *,
        cache_file: Path | None = None,
        registry_file: Path | None = None,
    ) -> None:
        """Make sure an up-to-date registry file exists.

        While the cached archive is fresher than the configured max age no
        network access happens; the archive is only unpacked again if the
        registry file itself went missing. ``force`` ignores the cache age.

        Raises:
            RegistryError: If the download or the unpacking fails.
        """
        cache_file = cache_file or paths.registry_cache_path()
        registry_file = registry_file or paths.registry_file_path()
        max_age = 0 if force else self.settings.cache_max_age

        if self.downloader.is_cache_valid(cache_file, max_age):
            if registry_file.exists():
                logger.debug("Registry cache is fresh: %s", cache_file)
                return
            logger.info("Registry cache is fresh but %s is missing, unpacking", registry_file)
            self._unzip(cache_file, registry_file.parent)
            return

        logger.info("Downloading registry from %s", self.settings.registry_url)
        try:
            await self.downloader.fetch_to_path(self.settings.registry_url, cache_file)
        except httpx.HTTPError as exc:
            raise RegistryError(
                f"Failed to download registry from {self.settings.registry_url}: {exc}"
            ) from exc
        except OSError as exc:
            raise RegistryError(f"Failed to write registry cache {cache_file}: {exc}") from exc

        self._unzip(cache_file, registry_file.parent)

    @staticmethod
    def _unzip(cache_file: Path, dest: Path) -> None:
        try:
            extract_zip(cache_file, dest)
        except ArchiveError as exc:
            raise RegistryError(f"Failed to unpack registry archive {cache_file}: {exc}") from exc
