"""FileSystem adapter backed by the real disk."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO


@dataclass(frozen=True, slots=True)
class LocalFileSystem:
    def mtime(self, path: Path) -> float:
        return os.stat(path).st_mtime

    def makedirs(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def open_write(self, path: Path) -> BinaryIO:
        return open(path, "wb")  # noqa: SIM115

    def exists(self, path: Path) -> bool:
        return Path(path).exists()
