"""Platform-aware selection of release assets and download rules.

Registry targets are ``<os>_<arch>`` tags such as ``linux_x64`` or
``darwin_arm64``; a rule's target is either one tag or a list of tags.
Rules are tried in registry order and the first match wins. On Linux a
``<target>_gnu`` rule is accepted when no rule names the plain target.
"""

from __future__ import annotations

import platform
import re
import sys
from collections.abc import Collection, Sequence
from typing import Protocol, TypeVar

from pkgtap.models import AssetRule, DownloadRule, StringOrList

_OS_ALIASES = {"darwin": "darwin", "linux": "linux", "windows": "win", "win32": "win"}
_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "arm64": "arm64",
    "aarch64": "arm64",
    "arm": "arm",
    "armv6l": "arm",
    "armv7l": "arm",
}


class _Targeted(Protocol):
    @property
    def target(self) -> StringOrList: ...


RuleT = TypeVar("RuleT", bound=_Targeted)


def detect_platform_target(system: str | None = None, machine: str | None = None) -> str:
    """Registry target tag for the running (or given) OS and CPU."""
    if system is None:
        system = "windows" if sys.platform.startswith("win") else platform.system()
    machine = machine if machine is not None else platform.machine()
    os_part = system.lower()
    arch_part = machine.lower()
    return f"{_OS_ALIASES.get(os_part, os_part)}_{_ARCH_ALIASES.get(arch_part, arch_part)}"


def matches_target(target: StringOrList, current: str) -> bool:
    return target.matches(current)


def _select(rules: Sequence[RuleT], current: str) -> RuleT | None:
    for rule in rules:
        if matches_target(rule.target, current):
            return rule
    if current.startswith("linux_"):
        fallback = f"{current}_gnu"
        for rule in rules:
            if matches_target(rule.target, fallback):
                return rule
    return None


def select_asset_rule(rules: Sequence[AssetRule], current: str) -> AssetRule | None:
    return _select(rules, current)


def select_download_rule(rules: Sequence[DownloadRule], current: str) -> DownloadRule | None:
    return _select(rules, current)


def split_asset_file(spec: str) -> tuple[str, str]:
    """Split ``archive.tar.gz:subdir/`` into the file name and the in-archive subdir."""
    filename, _, subdir = spec.partition(":")
    return filename, subdir.strip("/")


def select_asset_file(
    candidates: StringOrList,
    version: str,
    available: Collection[str] | None = None,
) -> str | None:
    """First candidate (templated with ``version``) that the release actually has.

    Without a release listing the first candidate is taken on trust.
    """
    resolved = [resolve_template(c, version) for c in candidates.values]
    if not resolved:
        return None
    if available is None:
        return resolved[0]
    for spec in resolved:
        if split_asset_file(spec)[0] in available:
            return spec
    return None


# ─── Templates ──────────────────────────────────────────────────

_BIN_KEY = re.compile(r"\{\{source\.asset\.bin\.([^}]+)\}\}")


def resolve_template(template: str, version: str) -> str:
    """Substitute ``{{version}}`` and the ``strip_prefix "v"`` filter."""
    result = template.replace("{{version}}", version).replace("{{ version }}", version)
    bare = version.removeprefix("v")
    result = result.replace('{{ version | strip_prefix "v" }}', bare)
    result = result.replace('{{version | strip_prefix "v"}}', bare)
    return result


def _asset_bin(bin_value: str | dict[str, str] | None, bin_name: str) -> str:
    if isinstance(bin_value, str):
        return bin_value
    if isinstance(bin_value, dict):
        return bin_value.get(bin_name, "")
    return ""


def resolve_bin_path(
    template: str,
    bin_name: str,
    asset: AssetRule | None = None,
    download: DownloadRule | None = None,
) -> str:
    """Expand registry ``bin`` templates against the selected rule.

    Understands ``{{source.asset.bin}}``, ``{{source.asset.bin.<name>}}``,
    ``{{source.asset.file}}`` and ``{{source.download.bin}}``.
    """
    result = template
    if asset is not None:
        result = result.replace("{{source.asset.bin}}", _asset_bin(asset.bin, bin_name))
        result = _BIN_KEY.sub(lambda m: _asset_bin(asset.bin, m.group(1)), result)
        result = result.replace("{{source.asset.file}}", split_asset_file(asset.file.first)[0])
    if download is not None:
        result = result.replace("{{source.download.bin}}", download.bin)
    return result
