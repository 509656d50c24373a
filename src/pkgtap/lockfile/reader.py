"""Read and parse the pkgtap lock file."""

from __future__ import annotations

import json
from pathlib import Path

from pkgtap.errors import LockfileReadError
from pkgtap.ids import normalize_package_id
from pkgtap.models import LocalPackage


def read_lockfile(path: Path) -> list[LocalPackage]:
    """Read installed-package records from ``path``.

    Returns an empty list if the file does not exist or is blank.

    Raises:
        LockfileReadError: If the file cannot be read or is not valid JSON.
    """
    if not path.exists():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LockfileReadError(f"Cannot read {path}: {exc}") from exc
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LockfileReadError(f"Invalid JSON in {path}: {exc}") from exc
    return parse_lockfile(data)


def parse_lockfile(data: object) -> list[LocalPackage]:
    """Parse the raw JSON document, normalising legacy ``pkg:`` ids.

    Raises:
        LockfileReadError: If the document does not have a ``packages`` list.
    """
    if not isinstance(data, dict):
        raise LockfileReadError("Lock file must contain a JSON object")
    raw_packages = data.get("packages") or []
    if not isinstance(raw_packages, list):
        raise LockfileReadError("Lock file 'packages' must be a list")

    # A legacy and a canonical spelling of one id collapse into one record.
    versions: dict[str, str] = {}
    for entry in raw_packages:
        if not isinstance(entry, dict) or not entry.get("sourceId"):
            continue
        source_id = normalize_package_id(str(entry["sourceId"]))
        versions[source_id] = str(entry.get("version") or "latest")
    return [LocalPackage(source_id=sid, version=ver) for sid, ver in versions.items()]
