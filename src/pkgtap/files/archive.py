"""Archive extraction with path-traversal protection.

Every entry name is checked before anything is written: the joined,
normalised path must stay under the normalised destination. Archives come
from third-party release pages and are treated as hostile.

Extraction is not transactional. An I/O failure partway through leaves a
partial tree behind; callers treat that as a failed install.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
import zipfile
from collections.abc import Callable
from pathlib import Path

from pkgtap.errors import ArchiveError, IllegalPathError

logger = logging.getLogger(__name__)

_ZIP_SUFFIXES = (".zip", ".vsix")
_TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".tar")


def _safe_target(dest_root: str, name: str) -> str:
    target = os.path.normpath(os.path.join(dest_root, name))
    if target != dest_root and not target.startswith(dest_root + os.sep):
        raise IllegalPathError(f"illegal file path: {name}")
    return target


def _prepare_dest(dest_dir: Path | str) -> str:
    dest_root = os.path.normpath(os.fspath(dest_dir))
    try:
        os.makedirs(dest_root, exist_ok=True)
    except OSError as exc:
        raise ArchiveError(f"Cannot create extraction directory {dest_root}: {exc}") from exc
    return dest_root


# ─── Zip ────────────────────────────────────────────────────────


def extract_zip(
    archive_path: Path | str,
    dest_dir: Path | str,
    *,
    opener: Callable[[Path | str], zipfile.ZipFile] = zipfile.ZipFile,
) -> None:
    """Extract a zip archive into ``dest_dir``.

    Raises:
        IllegalPathError: If any entry would land outside ``dest_dir``.
        ArchiveError: If the archive cannot be read or written out.
    """
    try:
        zf = opener(archive_path)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"Cannot open archive {archive_path}: {exc}") from exc

    with zf:
        dest_root = _prepare_dest(dest_dir)
        members = [(info, _safe_target(dest_root, info.filename)) for info in zf.infolist()]
        try:
            for info, target in members:
                mode = (info.external_attr >> 16) & 0o7777
                if info.is_dir():
                    os.makedirs(target, mode=mode or 0o755, exist_ok=True)
                    continue
                os.makedirs(os.path.dirname(target), exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                if mode:
                    os.chmod(target, mode)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ArchiveError(f"Failed to extract {archive_path}: {exc}") from exc


# ─── Tar ────────────────────────────────────────────────────────


def extract_tar(archive_path: Path | str, dest_dir: Path | str) -> None:
    """Extract a (possibly compressed) tarball into ``dest_dir``.

    Symlinks are recreated only when their target also stays inside the
    destination. Device files and fifos are skipped.
    """
    try:
        tf = tarfile.open(archive_path, "r:*")
    except (OSError, tarfile.TarError) as exc:
        raise ArchiveError(f"Cannot open archive {archive_path}: {exc}") from exc

    with tf:
        dest_root = _prepare_dest(dest_dir)
        members = []
        for member in tf.getmembers():
            target = _safe_target(dest_root, member.name)
            if member.issym() or member.islnk():
                base = os.path.dirname(target) if member.issym() else dest_root
                _safe_target(dest_root, os.path.join(base, member.linkname))
            members.append((member, target))

        try:
            for member, target in members:
                if member.isdir():
                    os.makedirs(target, mode=member.mode or 0o755, exist_ok=True)
                elif member.isfile():
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    src = tf.extractfile(member)
                    if src is None:
                        continue
                    with src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    os.chmod(target, member.mode & 0o7777)
                elif member.issym():
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    if os.path.lexists(target):
                        os.unlink(target)
                    os.symlink(member.linkname, target)
                elif member.islnk():
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    shutil.copy2(_safe_target(dest_root, member.linkname), target)
                else:
                    logger.debug("Skipping special tar member %s", member.name)
        except (OSError, tarfile.TarError) as exc:
            raise ArchiveError(f"Failed to extract {archive_path}: {exc}") from exc


# ─── Dispatch by file name ─────────────────────────────────────


def is_archive(name: str) -> bool:
    lowered = name.lower()
    return lowered.endswith(_ZIP_SUFFIXES + _TAR_SUFFIXES + (".gz",))


def extract_archive(archive_path: Path | str, dest_dir: Path | str) -> Path:
    """Unpack ``archive_path`` into ``dest_dir`` according to its extension.

    A bare ``.gz`` is decompressed to a file named without the suffix, and a
    non-archive is copied as-is (a single release binary). Returns the path
    of the extracted tree, or of the single file for ``.gz`` and plain files.
    """
    archive_path = Path(archive_path)
    dest_dir = Path(dest_dir)
    name = archive_path.name.lower()

    if name.endswith(_ZIP_SUFFIXES):
        extract_zip(archive_path, dest_dir)
        return dest_dir
    if name.endswith(_TAR_SUFFIXES):
        extract_tar(archive_path, dest_dir)
        return dest_dir

    dest_root = Path(_prepare_dest(dest_dir))
    try:
        if name.endswith(".gz"):
            target = dest_root / archive_path.name[: -len(".gz")]
            with gzip.open(archive_path, "rb") as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
        else:
            target = dest_root / archive_path.name
            if target.resolve() != archive_path.resolve():
                shutil.copyfile(archive_path, target)
        target.chmod(0o755)
    except OSError as exc:
        raise ArchiveError(f"Failed to unpack {archive_path}: {exc}") from exc
    return target
