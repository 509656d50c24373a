"""Port: filesystem capabilities used by the download/cache layer."""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Protocol


class FileSystem(Protocol):
    """Port for the handful of filesystem calls the downloader makes."""

    def mtime(self, path: Path) -> float:
        """Modification time in epoch seconds. Raises OSError if the path cannot be stat'd."""
        ...

    def makedirs(self, path: Path) -> None:
        """Create a directory and its parents; existing directories are fine."""
        ...

    def open_write(self, path: Path) -> BinaryIO:
        """Open ``path`` for binary writing, creating or truncating it."""
        ...

    def exists(self, path: Path) -> bool:
        ...
