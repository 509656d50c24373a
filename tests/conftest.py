"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pkgtap.providers.base import ProviderContext
from pkgtap.registry.store import RegistryStore
from pkgtap.settings import CACHE_ENV, HOME_ENV

SAMPLE_REGISTRY: list[dict[str, object]] = [
    {
        "name": "ripgrep",
        "version": "14.1.0",
        "description": "Recursively search directories for a regex pattern",
        "aliases": ["rg"],
        "source": {
            "id": "pkg:cargo/ripgrep",
            "asset": [
                {
                    "target": "linux_x64_gnu",
                    "file": "ripgrep-{{version}}-x86_64-unknown-linux-gnu.tar.gz",
                    "bin": "ripgrep-{{version}}-x86_64-unknown-linux-gnu/rg",
                }
            ],
        },
        "bin": {"rg": "{{source.asset.bin}}"},
    },
    {
        "name": "prettier",
        "version": "3.2.0",
        "description": "Opinionated code formatter",
        "source": {"id": "npm:prettier"},
        "bin": {"prettier": "npm:prettier"},
    },
    {
        "name": "black",
        "version": "24.2.0",
        "description": "The uncompromising Python code formatter",
        "aliases": ["python-black"],
        "source": {"id": "pypi:black"},
    },
]


@pytest.fixture(autouse=True)
def _isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point every pkgtap directory into the test's tmp_path."""
    monkeypatch.setenv(HOME_ENV, str(tmp_path / "home"))
    monkeypatch.setenv(CACHE_ENV, str(tmp_path / "cache"))


@pytest.fixture
def registry_bytes() -> bytes:
    return json.dumps(SAMPLE_REGISTRY).encode()


@pytest.fixture
def registry(registry_bytes: bytes) -> RegistryStore:
    return RegistryStore(reader=lambda: registry_bytes)


@pytest.fixture
def provider_ctx(tmp_path: Path, registry: RegistryStore) -> ProviderContext:
    return ProviderContext(
        packages_root=tmp_path / "packages",
        bin_dir=tmp_path / "bin",
        registry=registry,
        platform_target="linux_x64",
    )
