"""Exception hierarchy for pkgtap.

All exceptions inherit from PkgTapError (single catch point).
Messages are written for the end user -- they name the package as typed.
"""

from __future__ import annotations


class PkgTapError(Exception):
    """Base exception for all pkgtap errors."""


class ValidationError(PkgTapError):
    """A request was rejected before any I/O was attempted."""


class InvalidPackageIdError(ValidationError):
    """Package identifier has the wrong shape."""


class UnsupportedProviderError(ValidationError):
    """Provider name is not one of the known providers."""


class PathResolutionError(PkgTapError):
    """The per-user config or home directory could not be determined."""


class RegistryError(PkgTapError):
    """Error fetching or unpacking the package registry."""


class RegistryParseError(RegistryError):
    """Registry document is not valid JSON or has the wrong shape."""


class LockfileReadError(PkgTapError):
    """Error reading or parsing the lock file."""


class LockfileWriteError(PkgTapError):
    """Error writing the lock file."""


class ArchiveError(PkgTapError):
    """Archive could not be opened or extracted."""


class IllegalPathError(ArchiveError):
    """Archive entry resolves outside the destination directory."""


class InstallError(PkgTapError):
    """Package installation failed."""
