"""Domain models for pkgtap. All frozen dataclasses -- no mutation after creation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pkgtap.ids import (
    normalize_package_id,
    parse_package_id_and_version,
    parse_user_package_id,
    split_package_id,
)

# ─── Enumerations ─────────────────────────────────────────────


class Provider(StrEnum):
    NPM = "npm"
    PYPI = "pypi"
    GOLANG = "golang"
    CARGO = "cargo"
    GITHUB = "github"
    GITLAB = "gitlab"
    CODEBERG = "codeberg"
    GEM = "gem"
    COMPOSER = "composer"
    LUAROCKS = "luarocks"
    NUGET = "nuget"
    OPAM = "opam"
    OPENVSX = "openvsx"
    GENERIC = "generic"


class BatchOutcome(StrEnum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    ALL_FAILED = "all_failed"


# ─── Registry Models ──────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class StringOrList:
    """A registry field published either as a bare string or as an array.

    ``values`` always holds the full sequence; ``first`` is the primary value.
    """

    values: tuple[str, ...] = ()
    is_list: bool = False

    @classmethod
    def from_json(cls, raw: object) -> StringOrList:
        """Decode a scalar first, then a sequence.

        Raises:
            TypeError: If ``raw`` is neither a string nor a list of strings.
        """
        if raw is None:
            return cls()
        if isinstance(raw, str):
            return cls(values=(raw,), is_list=False)
        if isinstance(raw, list):
            if not all(isinstance(item, str) for item in raw):
                raise TypeError(f"expected a list of strings, got {raw!r}")
            return cls(values=tuple(raw), is_list=True)
        raise TypeError(f"expected a string or a list of strings, got {type(raw).__name__}")

    @property
    def first(self) -> str:
        return self.values[0] if self.values else ""

    def matches(self, value: str) -> bool:
        """Membership for a list, equality for a scalar."""
        if self.is_list:
            return value in self.values
        return self.first == value


@dataclass(frozen=True, slots=True)
class AssetRule:
    """A release asset applicable to one or more platform targets."""

    target: StringOrList = field(default_factory=StringOrList)
    file: StringOrList = field(default_factory=StringOrList)
    bin: str | dict[str, str] | None = None


@dataclass(frozen=True, slots=True)
class DownloadRule:
    """Direct downloads (destination filename -> URL) for a platform target."""

    target: StringOrList = field(default_factory=StringOrList)
    files: dict[str, str] = field(default_factory=dict)
    bin: str = ""


@dataclass(frozen=True, slots=True)
class RegistrySource:
    id: str = ""
    assets: list[AssetRule] = field(default_factory=list)
    downloads: list[DownloadRule] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """One installable package as published in the registry.

    An entry with no name and no source id is the "not found" value and is falsy.
    """

    name: str = ""
    version: str = ""
    description: str = ""
    homepage: str = ""
    licenses: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    source: RegistrySource = field(default_factory=RegistrySource)
    bin: dict[str, str] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> RegistryEntry:
        return cls()

    def __bool__(self) -> bool:
        return bool(self.name or self.source.id)


# ─── Local State Models ───────────────────────────────────────


@dataclass(frozen=True, slots=True)
class LocalPackage:
    """An installed package as recorded in the lock file."""

    source_id: str
    version: str = "latest"

    @property
    def provider(self) -> str:
        return split_package_id(self.source_id)[0]

    @property
    def package_id(self) -> str:
        return split_package_id(self.source_id)[1]


@dataclass(frozen=True, slots=True)
class InstallRequest:
    """One unit of work built from user input. Never persisted."""

    provider: str
    package_id: str
    version: str = "latest"
    display_id: str = ""

    @property
    def canonical_id(self) -> str:
        return normalize_package_id(f"{self.provider}:{self.package_id}")

    @classmethod
    def parse(cls, arg: str) -> InstallRequest:
        """Build a request from ``provider:package[@version]`` or the legacy form.

        Raises:
            InvalidPackageIdError: If the identifier is malformed.
        """
        without_version, version = parse_package_id_and_version(arg)
        provider, package_id = parse_user_package_id(without_version)
        return cls(
            provider=provider,
            package_id=package_id,
            version=version,
            display_id=arg,
        )


# ─── Provider Results ─────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class InstallResult:
    """Result of a provider operation. Providers return this even on failure."""

    success: bool
    package_identifier: str
    install_method: str
    message: str = ""
    version: str = ""
    command_output: str = ""


@dataclass(frozen=True, slots=True)
class ProviderHealth:
    provider: str
    available: bool
    missing_tool: str = ""
    description: str = ""


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Per-package accounting of a batch operation."""

    success_count: int = 0
    failure_count: int = 0
    failures: list[str] = field(default_factory=list)
    results: list[InstallResult] = field(default_factory=list)

    @property
    def outcome(self) -> BatchOutcome:
        if self.failure_count == 0:
            return BatchOutcome.ALL_SUCCEEDED
        if self.success_count == 0:
            return BatchOutcome.ALL_FAILED
        return BatchOutcome.PARTIAL
