"""Tests for archive extraction and zip-slip protection (files/archive.py)."""

from __future__ import annotations

import gzip
import io
import os
import tarfile
import zipfile
from pathlib import Path

import pytest

from pkgtap.errors import ArchiveError, IllegalPathError
from pkgtap.files.archive import extract_archive, extract_tar, extract_zip, is_archive

# --- Helpers ---------------------------------------------------------------


def _make_zip(path: Path, entries: dict[str, bytes], modes: dict[str, int] | None = None) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            info = zipfile.ZipInfo(name)
            if modes and name in modes:
                info.external_attr = modes[name] << 16
            zf.writestr(info, data)
    return path


def _make_tar(path: Path, entries: dict[str, bytes], mode: str = "w:gz") -> Path:
    with tarfile.open(path, mode) as tf:
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
    return path


# ═══════════════════════════════════════════════════════════════════
# Zip
# ═══════════════════════════════════════════════════════════════════


class TestExtractZip:
    def test_extracts_nested_files(self, tmp_path):
        archive = _make_zip(tmp_path / "a.zip", {"bin/tool": b"#!/bin/sh\n", "README": b"hi"})
        dest = tmp_path / "out"
        extract_zip(archive, dest)
        assert (dest / "bin" / "tool").read_bytes() == b"#!/bin/sh\n"
        assert (dest / "README").read_text() == "hi"

    def test_preserves_executable_bit(self, tmp_path):
        archive = _make_zip(tmp_path / "a.zip", {"tool": b"x"}, modes={"tool": 0o755})
        extract_zip(archive, tmp_path / "out")
        assert os.access(tmp_path / "out" / "tool", os.X_OK)

    def test_zip_slip_is_rejected_before_writing(self, tmp_path):
        archive = _make_zip(tmp_path / "evil.zip", {"ok.txt": b"fine", "../evil": b"pwned"})
        dest = tmp_path / "out"
        with pytest.raises(IllegalPathError, match="illegal file path: ../evil"):
            extract_zip(archive, dest)
        assert not (tmp_path / "evil").exists()
        assert not (dest / "ok.txt").exists()

    def test_absolute_entry_is_rejected(self, tmp_path):
        archive = _make_zip(tmp_path / "abs.zip", {"/etc/evil": b"x"})
        with pytest.raises(IllegalPathError):
            extract_zip(archive, tmp_path / "out")

    def test_illegal_path_is_an_archive_error(self, tmp_path):
        archive = _make_zip(tmp_path / "evil.zip", {"a/../../evil": b"x"})
        with pytest.raises(ArchiveError):
            extract_zip(archive, tmp_path / "out")

    def test_not_a_zip(self, tmp_path):
        bogus = tmp_path / "bogus.zip"
        bogus.write_bytes(b"not a zip")
        with pytest.raises(ArchiveError, match="Cannot open archive"):
            extract_zip(bogus, tmp_path / "out")

    def test_injected_opener(self, tmp_path):
        archive = _make_zip(tmp_path / "a.zip", {"f": b"1"})
        opened: list[Path] = []

        def opener(path):
            opened.append(Path(path))
            return zipfile.ZipFile(path)

        extract_zip(archive, tmp_path / "out", opener=opener)
        assert opened == [archive]


# ═══════════════════════════════════════════════════════════════════
# Tar
# ═══════════════════════════════════════════════════════════════════


class TestExtractTar:
    def test_extracts_gzipped_tarball(self, tmp_path):
        archive = _make_tar(tmp_path / "a.tar.gz", {"pkg/bin/tool": b"run"})
        extract_tar(archive, tmp_path / "out")
        tool = tmp_path / "out" / "pkg" / "bin" / "tool"
        assert tool.read_bytes() == b"run"
        assert os.access(tool, os.X_OK)

    def test_traversal_is_rejected(self, tmp_path):
        archive = _make_tar(tmp_path / "evil.tar", {"../evil": b"x"}, mode="w")
        with pytest.raises(IllegalPathError):
            extract_tar(archive, tmp_path / "out")
        assert not (tmp_path / "evil").exists()

    def test_symlink_escaping_destination_is_rejected(self, tmp_path):
        archive = tmp_path / "link.tar"
        with tarfile.open(archive, "w") as tf:
            info = tarfile.TarInfo("link")
            info.type = tarfile.SYMTYPE
            info.linkname = "../../etc/passwd"
            tf.addfile(info)
        with pytest.raises(IllegalPathError):
            extract_tar(archive, tmp_path / "out")

    def test_symlink_inside_destination_is_kept(self, tmp_path):
        archive = tmp_path / "link.tar"
        with tarfile.open(archive, "w") as tf:
            data = b"real"
            info = tarfile.TarInfo("bin/real")
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
            link = tarfile.TarInfo("bin/alias")
            link.type = tarfile.SYMTYPE
            link.linkname = "real"
            tf.addfile(link)
        extract_tar(archive, tmp_path / "out")
        alias = tmp_path / "out" / "bin" / "alias"
        assert alias.is_symlink()
        assert alias.read_bytes() == b"real"


# ═══════════════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════════════


class TestExtractArchive:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("a.zip", True),
            ("ext.vsix", True),
            ("a.tar.gz", True),
            ("a.TGZ", True),
            ("a.tar.xz", True),
            ("tool.gz", True),
            ("tool", False),
            ("tool.exe", False),
        ],
    )
    def test_is_archive(self, name, expected):
        assert is_archive(name) is expected

    def test_zip_returns_destination(self, tmp_path):
        archive = _make_zip(tmp_path / "a.zip", {"f": b"1"})
        assert extract_archive(archive, tmp_path / "out") == tmp_path / "out"

    def test_vsix_is_unzipped(self, tmp_path):
        archive = _make_zip(tmp_path / "pub.ext-1.0.0.vsix", {"extension/package.json": b"{}"})
        extract_archive(archive, tmp_path / "out")
        assert (tmp_path / "out" / "extension" / "package.json").exists()

    def test_tarball(self, tmp_path):
        archive = _make_tar(tmp_path / "a.tgz", {"f": b"1"})
        assert extract_archive(archive, tmp_path / "out") == tmp_path / "out"
        assert (tmp_path / "out" / "f").read_bytes() == b"1"

    def test_bare_gzip_is_decompressed(self, tmp_path):
        archive = tmp_path / "tool-linux.gz"
        archive.write_bytes(gzip.compress(b"ELF"))
        target = extract_archive(archive, tmp_path / "out")
        assert target == tmp_path / "out" / "tool-linux"
        assert target.read_bytes() == b"ELF"
        assert os.access(target, os.X_OK)

    def test_plain_file_is_copied(self, tmp_path):
        binary = tmp_path / "tool"
        binary.write_bytes(b"ELF")
        target = extract_archive(binary, tmp_path / "out")
        assert target == tmp_path / "out" / "tool"
        assert target.read_bytes() == b"ELF"

    def test_plain_file_in_place(self, tmp_path):
        binary = tmp_path / "tool"
        binary.write_bytes(b"ELF")
        assert extract_archive(binary, tmp_path) == binary
        assert binary.read_bytes() == b"ELF"
