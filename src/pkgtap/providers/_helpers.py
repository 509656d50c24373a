"""Shared plumbing for providers that drive an external package manager."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from pkgtap.errors import IllegalPathError
from pkgtap.models import InstallResult
from pkgtap.providers.bins import link_binary, unlink_binaries

logger = logging.getLogger(__name__)

INSTALL_URLS: dict[str, str] = {
    "npm": "https://nodejs.org/",
    "pip3": "https://pip.pypa.io/en/stable/installation/",
    "pip": "https://pip.pypa.io/en/stable/installation/",
    "go": "https://go.dev/doc/install",
    "cargo": "https://rustup.rs/",
    "git": "https://git-scm.com/downloads",
    "gem": "https://www.ruby-lang.org/en/documentation/installation/",
    "composer": "https://getcomposer.org/download/",
    "luarocks": "https://luarocks.org/#quick-start",
    "dotnet": "https://dotnet.microsoft.com/download",
    "opam": "https://opam.ocaml.org/doc/Install.html",
}


def first_available(*tools: str) -> str | None:
    """The first of ``tools`` found on PATH."""
    for tool in tools:
        if shutil.which(tool) is not None:
            return tool
    return None


def tool_missing(provider: str, package_id: str, tool: str) -> InstallResult:
    url = INSTALL_URLS.get(tool, "")
    hint = f" Install it from {url}" if url else ""
    return InstallResult(
        success=False,
        package_identifier=package_id,
        install_method=provider,
        message=f"{tool} is required for {provider} packages but is not installed.{hint}",
    )


def command_result(
    provider: str,
    package_id: str,
    action: str,
    returncode: int,
    stdout: str,
    stderr: str,
    version: str = "",
) -> InstallResult:
    """Turn an exit code into an InstallResult, keeping the tool's output on failure."""
    if returncode == 0:
        return InstallResult(
            success=True,
            package_identifier=package_id,
            install_method=provider,
            message=f"{action} {package_id} via {provider}.",
            version=version,
        )
    output = stderr or stdout
    detail = output.strip() or f"exit code {returncode}"
    return InstallResult(
        success=False,
        package_identifier=package_id,
        install_method=provider,
        message=f"{provider} failed for {package_id}: {detail}",
        command_output=output,
    )


def failure(provider: str, package_id: str, message: str) -> InstallResult:
    return InstallResult(
        success=False,
        package_identifier=package_id,
        install_method=provider,
        message=message,
    )


def link_failed(provider: str, package_id: str, exc: OSError) -> InstallResult:
    logger.warning("Linking executables of %s failed: %s", package_id, exc)
    return failure(
        provider,
        package_id,
        f"{package_id} was installed but its executables could not be linked: {exc}",
    )


def package_subdir(root: Path, package_id: str) -> Path:
    """``root / package_id``, refusing ids that would leave ``root``.

    Raises:
        IllegalPathError: If the id resolves to ``root`` itself or outside it.
    """
    base = os.path.normpath(os.fspath(root))
    target = os.path.normpath(os.path.join(base, package_id))
    if not target.startswith(base + os.sep):
        raise IllegalPathError(f"illegal package path: {package_id}")
    return Path(target)


def relink_directory(source_bin: Path, bin_dir: Path, owner: Path) -> list[str]:
    """Make ``bin_dir`` mirror the executables in ``source_bin``.

    Links into ``owner`` that no longer have a target are dropped first.
    """
    unlink_binaries(bin_dir, owner)
    linked: list[str] = []
    if not source_bin.is_dir():
        return linked
    for entry in sorted(source_bin.iterdir()):
        if entry.is_file():
            link_binary(entry, bin_dir, entry.name)
            linked.append(entry.name)
    return linked


def first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""
