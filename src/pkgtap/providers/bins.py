"""Expose installed executables in the shared bin directory.

Links are relative so the whole share root can be moved. Removal is by
ownership: any link in the bin directory that points into a package's
directory belongs to that package.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

_WRAPPER_MARKER = "# pkgtap wrapper"


def _clear(path: Path) -> None:
    if path.is_symlink() or path.exists():
        path.unlink()


def link_binary(target: Path, bin_dir: Path, name: str) -> Path:
    """Symlink ``bin_dir/name`` to ``target`` (relative) and mark the target executable."""
    bin_dir.mkdir(parents=True, exist_ok=True)
    link = bin_dir / name
    _clear(link)
    link.symlink_to(os.path.relpath(target, bin_dir))
    try:
        target.chmod(target.stat().st_mode | 0o755)
    except OSError as exc:
        logger.debug("Could not mark %s executable: %s", target, exc)
    logger.info("Linked %s -> %s", link, target)
    return link


def write_wrapper(
    bin_dir: Path,
    name: str,
    command: str,
    env: dict[str, str],
    owner: Path,
) -> Path:
    """Write a ``/bin/sh`` wrapper that prepends ``env`` entries and execs ``command``.

    Each value in ``env`` is prepended to the existing variable, so PATH-like
    variables keep working.
    """
    bin_dir.mkdir(parents=True, exist_ok=True)
    wrapper = bin_dir / name
    _clear(wrapper)
    exports = "\n".join(f'export {key}="{value}:${key}"' for key, value in env.items())
    wrapper.write_text(
        f"#!/bin/sh\n{_WRAPPER_MARKER} for {owner}\n{exports}\nexec {command} \"$@\"\n",
        encoding="utf-8",
    )
    wrapper.chmod(0o755)
    logger.info("Wrote wrapper %s for %s", wrapper, command)
    return wrapper


def _owned_by(entry: Path, bin_dir: Path, package_dir: Path) -> bool:
    owner = os.path.normpath(package_dir)
    if entry.is_symlink():
        target = os.readlink(entry)
        if not os.path.isabs(target):
            target = os.path.join(bin_dir, target)
        target = os.path.normpath(target)
        return target == owner or target.startswith(owner + os.sep)
    if entry.is_file():
        try:
            head = entry.read_text(encoding="utf-8", errors="replace")[:512]
        except OSError:
            return False
        return f"{_WRAPPER_MARKER} for {package_dir}\n" in head
    return False


def unlink_binaries(bin_dir: Path, package_dir: Path) -> list[str]:
    """Remove every link or wrapper in ``bin_dir`` that belongs to ``package_dir``."""
    if not bin_dir.is_dir():
        return []
    removed: list[str] = []
    for entry in sorted(bin_dir.iterdir()):
        if _owned_by(entry, bin_dir, package_dir):
            try:
                entry.unlink()
                removed.append(entry.name)
            except OSError as exc:
                logger.warning("Could not remove %s: %s", entry, exc)
    return removed


def find_file(root: Path, name: str) -> Path | None:
    """Depth-first search for a file called ``name`` under ``root``."""
    if not root.is_dir():
        return None
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        if name in filenames:
            return Path(dirpath) / name
    return None
