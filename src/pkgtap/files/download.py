"""HTTP download with an mtime-based cache.

Network failures are not translated here: ``httpx.HTTPError`` (including
``HTTPStatusError`` for non-2xx responses) reaches the caller unchanged.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from pkgtap.files.base import FileSystem
from pkgtap.files.local import LocalFileSystem

logger = logging.getLogger(__name__)


@dataclass
class Downloader:
    """Fetches URLs through an injected client and filesystem."""

    http: httpx.AsyncClient
    fs: FileSystem = field(default_factory=LocalFileSystem)
    clock: Callable[[], float] = time.time

    async def fetch(self, url: str) -> bytes:
        """GET ``url`` and return the body."""
        response = await self.http.get(url)
        try:
            response.raise_for_status()
            return response.content
        finally:
            await response.aclose()

    async def fetch_to_path(self, url: str, dest: Path) -> None:
        """Stream ``url`` into ``dest``, creating or truncating it.

        The status is checked before ``dest`` is opened. A failure midway
        leaves whatever was already written.
        """
        logger.debug("Downloading %s -> %s", url, dest)
        async with self.http.stream("GET", url) as response:
            response.raise_for_status()
            self.fs.makedirs(Path(dest).parent)
            with self.fs.open_write(Path(dest)) as fh:
                async for chunk in response.aiter_bytes():
                    fh.write(chunk)

    async def fetch_with_cache(self, url: str, cache_path: Path, max_age: float) -> None:
        """Download ``url`` to ``cache_path`` unless the cached copy is still fresh."""
        if self.is_cache_valid(cache_path, max_age):
            logger.debug("Cache hit for %s (%s)", url, cache_path)
            return
        await self.fetch_to_path(url, cache_path)

    def is_cache_valid(self, path: Path, max_age: float) -> bool:
        """True iff ``path`` exists and was modified less than ``max_age`` seconds ago."""
        try:
            mtime = self.fs.mtime(Path(path))
        except OSError:
            return False
        return self.clock() - mtime < max_age
