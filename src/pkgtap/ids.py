"""Package identifier parsing and normalisation.

Two id forms are in circulation:

* canonical ``<provider>:<package-id>`` (always written)
* legacy ``pkg:<provider>/<package-id>`` (still accepted everywhere on read)

Every store boundary passes ids through :func:`normalize_package_id` so no
caller ever sees the legacy form.
"""

from __future__ import annotations

from pkgtap.errors import InvalidPackageIdError

_LEGACY_PREFIX = "pkg:"
LATEST = "latest"


def normalize_package_id(source_id: str) -> str:
    """Map ``pkg:provider/name`` to ``provider:name``; other ids pass through."""
    if source_id.startswith(_LEGACY_PREFIX):
        parts = source_id[len(_LEGACY_PREFIX) :].split("/", 1)
        if len(parts) == 2:
            return f"{parts[0]}:{parts[1]}"
    return source_id


def split_package_id(source_id: str) -> tuple[str, str]:
    """Return ``(provider, package_id)``, or two empty strings if there is no colon."""
    provider, sep, package_id = normalize_package_id(source_id).partition(":")
    if not sep:
        return "", ""
    return provider, package_id


def is_version_string(value: str) -> bool:
    """A version is ``latest`` or anything containing a digit."""
    return value == LATEST or any(ch.isdigit() for ch in value)


def parse_package_id_and_version(arg: str) -> tuple[str, str]:
    """Split a trailing ``@version`` off a package id.

    Only the last ``@`` segment is considered, and only when it looks like a
    version, so scoped npm names such as ``npm:@scope/pkg`` survive intact.
    """
    head, sep, tail = arg.rpartition("@")
    if sep and head and is_version_string(tail):
        return head, tail
    return arg, LATEST


def parse_user_package_id(arg: str) -> tuple[str, str]:
    """Validate a user-supplied id and return ``(provider, package_id)``.

    Raises:
        InvalidPackageIdError: If the provider or package segment is missing, or
            the package segment would escape its install directory.
    """
    if arg.startswith(_LEGACY_PREFIX):
        parts = arg[len(_LEGACY_PREFIX) :].split("/", 1)
        if len(parts) < 2:
            raise InvalidPackageIdError(
                f"invalid package ID format '{arg}': "
                "expected 'pkg:provider/package-name[@version]'"
            )
        provider, package_id = parts
    else:
        if ":" not in arg:
            raise InvalidPackageIdError(
                f"invalid package ID format '{arg}': expected '<provider>:<package-id>[@version]'"
            )
        provider, package_id = arg.split(":", 1)

    if not provider:
        raise InvalidPackageIdError(f"invalid package ID format '{arg}': provider cannot be empty")
    if not package_id:
        raise InvalidPackageIdError(
            f"invalid package ID format '{arg}': package name cannot be empty"
        )
    segments = package_id.replace("\\", "/").split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        raise InvalidPackageIdError(
            f"invalid package ID format '{arg}': "
            "package name cannot contain empty, '.' or '..' path segments"
        )
    return provider, package_id


def looks_like_bare_name(arg: str) -> bool:
    """True for input with neither a provider prefix nor the legacy prefix."""
    return ":" not in arg and not arg.startswith(_LEGACY_PREFIX)
