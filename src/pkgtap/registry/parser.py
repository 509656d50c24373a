"""Parse the registry JSON document into RegistryEntry models.

Upstream producers are inconsistent: any scalar string field may arrive as
an array (first element wins), list fields may arrive as a bare string, and
``source.asset`` / ``source.download`` may be a single object or an array.
All of that is accepted. Anything that is not JSON, or not an array of
objects, is a hard RegistryParseError.
"""

from __future__ import annotations

import json

from pkgtap.errors import RegistryParseError
from pkgtap.ids import normalize_package_id
from pkgtap.models import (
    AssetRule,
    DownloadRule,
    RegistryEntry,
    RegistrySource,
    StringOrList,
)


def parse_registry(data: bytes | str) -> list[RegistryEntry]:
    """Decode a registry document and return entries sorted by name.

    Raises:
        RegistryParseError: If the document is malformed.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RegistryParseError(f"Invalid registry JSON: {exc}") from exc

    if not isinstance(raw, list):
        raise RegistryParseError(
            f"Registry document must be a JSON array, got {type(raw).__name__}"
        )

    entries: list[RegistryEntry] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise RegistryParseError(f"Registry item #{index} is not an object")
        try:
            entries.append(_parse_entry(item))
        except (TypeError, AttributeError) as exc:
            raise RegistryParseError(f"Registry item #{index} is malformed: {exc}") from exc

    entries.sort(key=lambda entry: entry.name)
    return entries


# ── Parsing helpers ──────────────────────────────────────────


def _scalar(raw: object) -> str:
    return StringOrList.from_json(raw).first


def _str_list(raw: object) -> list[str]:
    return list(StringOrList.from_json(raw).values)


def _objects(raw: object) -> list[dict]:
    """Accept a single object or an array of objects."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [raw]
    if isinstance(raw, list):
        if not all(isinstance(item, dict) for item in raw):
            raise TypeError("expected an array of objects")
        return raw
    raise TypeError(f"expected an object or an array, got {type(raw).__name__}")


def _str_map(raw: object) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise TypeError(f"expected an object, got {type(raw).__name__}")
    return {str(key): _scalar(value) for key, value in raw.items()}


def _parse_asset_bin(raw: object) -> str | dict[str, str] | None:
    if raw is None or isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        return _str_map(raw)
    if isinstance(raw, list):
        return _scalar(raw)
    raise TypeError(f"asset bin must be a string or an object, got {type(raw).__name__}")


def _parse_asset(raw: dict) -> AssetRule:
    return AssetRule(
        target=StringOrList.from_json(raw.get("target")),
        file=StringOrList.from_json(raw.get("file")),
        bin=_parse_asset_bin(raw.get("bin")),
    )


def _parse_download(raw: dict) -> DownloadRule:
    return DownloadRule(
        target=StringOrList.from_json(raw.get("target")),
        files=_str_map(raw.get("files")),
        bin=_scalar(raw.get("bin")),
    )


def _parse_source(raw: object) -> RegistrySource:
    if raw is None:
        return RegistrySource()
    if not isinstance(raw, dict):
        raise TypeError(f"source must be an object, got {type(raw).__name__}")
    return RegistrySource(
        id=normalize_package_id(_scalar(raw.get("id"))),
        assets=[_parse_asset(item) for item in _objects(raw.get("asset"))],
        downloads=[_parse_download(item) for item in _objects(raw.get("download"))],
    )


def _parse_entry(raw: dict) -> RegistryEntry:
    return RegistryEntry(
        name=_scalar(raw.get("name")),
        version=_scalar(raw.get("version")),
        description=_scalar(raw.get("description")),
        homepage=_scalar(raw.get("homepage")),
        licenses=_str_list(raw.get("licenses")),
        languages=_str_list(raw.get("languages")),
        categories=_str_list(raw.get("categories")),
        aliases=_str_list(raw.get("aliases")),
        source=_parse_source(raw.get("source")),
        bin=_str_map(raw.get("bin")),
    )
