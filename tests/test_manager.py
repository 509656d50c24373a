"""Tests for the PackageManager facade (manager.py)."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pkgtap.errors import PathResolutionError, RegistryError, UnsupportedProviderError
from pkgtap.lockfile.store import LocalPackageStore
from pkgtap.manager import PackageManager, check_update_available
from pkgtap.models import BatchOutcome, InstallResult, LocalPackage, ProviderHealth
from pkgtap.providers.pypi import PypiProvider
from pkgtap.registry.store import RegistryStore

# --- Helpers ---------------------------------------------------------------


def _ok(package_id: str, version: str = "") -> InstallResult:
    return InstallResult(
        success=True, package_identifier=package_id, install_method="fake", version=version
    )


def _fail(package_id: str, message: str = "boom") -> InstallResult:
    return InstallResult(
        success=False, package_identifier=package_id, install_method="fake", message=message
    )


def _provider(failing: set[str] | None = None, latest: str | None = None) -> MagicMock:
    """Provider double that succeeds unless the package id is in ``failing``."""
    failing = failing or set()
    provider = MagicMock()

    async def install(package_id, version="latest"):
        if package_id in failing:
            return _fail(package_id)
        return _ok(package_id, "" if version == "latest" else version)

    async def uninstall(package_id):
        return _fail(package_id) if package_id in failing else _ok(package_id)

    provider.install = AsyncMock(side_effect=install)
    provider.uninstall = AsyncMock(side_effect=uninstall)
    provider.latest_version = AsyncMock(return_value=latest)
    return provider


class FakeResolver:
    def __init__(self, **providers: MagicMock) -> None:
        self.providers = providers

    def resolve(self, name: str) -> MagicMock:
        if name not in self.providers:
            raise UnsupportedProviderError(f"Unsupported provider '{name}'")
        return self.providers[name]

    async def check_all_provider_health(self) -> list[ProviderHealth]:
        return [ProviderHealth(provider=name, available=True) for name in self.providers]


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    return tmp_path / "pkgtap-lock.json"


@pytest.fixture
def store(lock_path: Path) -> LocalPackageStore:
    return LocalPackageStore(path_factory=lambda: lock_path)


def _manager(registry, store, fetcher=None, **providers) -> PackageManager:
    return PackageManager(
        registry=registry,
        local_store=store,
        resolver=FakeResolver(**providers),
        fetcher=fetcher,
    )


# ═══════════════════════════════════════════════════════════════════
# check_update_available
# ═══════════════════════════════════════════════════════════════════


class TestCheckUpdateAvailable:
    @pytest.mark.parametrize(
        "local,remote,expected",
        [
            ("1.0.0", "1.1.0", (True, "1.1.0")),
            ("v1.0.0", "1.0.1", (True, "1.0.1")),
            ("1.1.0", "1.0.0", (False, "")),
            ("1.0.0", "1.0.0", (False, "")),
            ("latest", "2.0.0", (True, "2.0.0")),
            ("", "2.0.0", (True, "2.0.0")),
            ("1.0.0", "", (False, "")),
            ("main", "2.0.0", (False, "")),
        ],
    )
    def test_table(self, local, remote, expected):
        assert check_update_available(local, remote) == expected


# ═══════════════════════════════════════════════════════════════════
# Single-package operations
# ═══════════════════════════════════════════════════════════════════


class TestInstall:
    async def test_success_records_reported_version(self, registry, store):
        npm = _provider()
        manager = _manager(registry, store, npm=npm)

        result = await manager.install("npm:prettier", "3.2.5")

        assert result.success is True
        npm.install.assert_awaited_once_with("prettier", "3.2.5")
        assert store.load() == [LocalPackage("npm:prettier", "3.2.5")]

    async def test_success_without_version_records_latest(self, registry, store):
        manager = _manager(registry, store, npm=_provider())
        assert await manager.install_package("npm:prettier") is True
        assert store.load() == [LocalPackage("npm:prettier", "latest")]

    async def test_legacy_id_is_recorded_canonically(self, registry, store):
        cargo = _provider()
        manager = _manager(registry, store, cargo=cargo)
        await manager.install("pkg:cargo/ripgrep", "14.1.0")
        cargo.install.assert_awaited_once_with("ripgrep", "14.1.0")
        assert store.load()[0].source_id == "cargo:ripgrep"

    async def test_failure_leaves_lock_untouched(self, registry, store, lock_path):
        manager = _manager(registry, store, npm=_provider(failing={"prettier"}))
        assert await manager.install_package("npm:prettier") is False
        assert not lock_path.exists()

    async def test_unsupported_provider_is_a_failed_result(self, registry, store):
        manager = _manager(registry, store)
        result = await manager.install("brew:wget")
        assert result.success is False
        assert result.install_method == "brew"
        assert "Unsupported provider 'brew'" in result.message

    async def test_path_resolution_error_propagates(self, registry):
        def broken():
            raise PathResolutionError("no home directory")

        manager = _manager(registry, LocalPackageStore(path_factory=broken), npm=_provider())
        with pytest.raises(PathResolutionError):
            await manager.install("npm:prettier")


class TestRemove:
    async def test_success_drops_record(self, registry, store):
        store.upsert("npm:prettier", "3.2.0")
        store.upsert("pypi:black", "24.2.0")
        manager = _manager(registry, store, npm=_provider())

        assert await manager.remove_package("npm:prettier") is True

        assert store.load() == [LocalPackage("pypi:black", "24.2.0")]

    async def test_success_without_record(self, registry, store):
        manager = _manager(registry, store, npm=_provider())
        assert (await manager.remove("npm:prettier")).success is True

    async def test_failure_keeps_record(self, registry, store):
        store.upsert("npm:prettier", "3.2.0")
        manager = _manager(registry, store, npm=_provider(failing={"prettier"}))
        assert await manager.remove_package("npm:prettier") is False
        assert store.is_installed("npm:prettier")


class TestUpdate:
    async def test_uses_provider_latest_version(self, registry, store):
        npm = _provider(latest="3.3.0")
        manager = _manager(registry, store, npm=npm)

        assert await manager.update_package("npm:prettier") is True

        npm.install.assert_awaited_once_with("prettier", "3.3.0")
        assert store.get_by_source_id("npm:prettier").version == "3.3.0"

    async def test_falls_back_to_registry_version(self, registry, store):
        npm = _provider(latest=None)
        await _manager(registry, store, npm=npm).update("npm:prettier")
        npm.install.assert_awaited_once_with("prettier", "3.2.0")

    async def test_falls_back_to_latest(self, registry, store):
        npm = _provider(latest=None)
        await _manager(registry, store, npm=npm).update("npm:unlisted")
        npm.install.assert_awaited_once_with("unlisted", "latest")

    async def test_unsupported_provider(self, registry, store):
        result = await _manager(registry, store).update("brew:wget")
        assert result.success is False


# ═══════════════════════════════════════════════════════════════════
# Batches
# ═══════════════════════════════════════════════════════════════════


class TestBatches:
    async def test_partial_batch_keeps_going(self, registry, store):
        npm = _provider(failing={"b"})
        manager = _manager(registry, store, npm=npm)

        batch = await manager.install_many(["npm:a", "npm:b@2.0.0", "npm:c"])

        assert batch.success_count == 2
        assert batch.failure_count == 1
        assert batch.failures == ["npm:b@2.0.0"]
        assert batch.outcome is BatchOutcome.PARTIAL
        assert [r.success for r in batch.results] == [True, False, True]
        assert npm.install.await_count == 3
        assert [p.source_id for p in store.load()] == ["npm:a", "npm:c"]

    async def test_invalid_id_is_reported_by_display_id(self, registry, store):
        manager = _manager(registry, store, npm=_provider())

        batch = await manager.install_many(["npm:", "npm:ok"])

        assert batch.failures == ["npm:"]
        assert "package name cannot be empty" in batch.results[0].message
        assert batch.results[1].success is True

    async def test_path_escaping_id_never_reaches_provider(self, registry, store):
        github = _provider()
        manager = _manager(registry, store, github=github)

        batch = await manager.remove_many(["github:../../precious", "github:/etc", "github:a//b"])

        assert batch.failure_count == 3
        assert all("path segments" in r.message for r in batch.results)
        github.uninstall.assert_not_called()

    async def test_os_error_in_one_item_does_not_stop_the_rest(self, registry, store):
        npm = _provider()
        npm.install.side_effect = [PermissionError("bin dir is read-only"), _ok("b", "1.0.0")]
        manager = _manager(registry, store, npm=npm)

        batch = await manager.install_many(["npm:a", "npm:b"])

        assert batch.failures == ["npm:a"]
        assert "bin dir is read-only" in batch.results[0].message
        assert batch.results[1].success is True
        assert [p.source_id for p in store.load()] == ["npm:b"]

    @patch("pkgtap.providers._helpers.shutil.which", return_value="/usr/bin/pip3")
    @patch("pkgtap.providers.pypi.run_command", new_callable=AsyncMock)
    async def test_unlinkable_package_does_not_stop_the_rest(
        self, mock_run, _mock_which, store, provider_ctx
    ):
        entries = [
            {"name": "tool", "source": {"id": "pypi:tool"}, "bin": {"sub/tool": "tool"}},
            {"name": "other", "source": {"id": "pypi:other"}},
        ]
        raw = json.dumps(entries).encode()
        registry = RegistryStore(reader=lambda: raw)
        ctx = dataclasses.replace(provider_ctx, registry=registry)
        mock_run.return_value = (0, "", "")
        manager = _manager(registry, store, pypi=PypiProvider(ctx))

        batch = await manager.install_many(["pypi:tool", "pypi:other"])

        assert batch.failures == ["pypi:tool"]
        assert batch.results[1].success is True
        assert mock_run.await_count == 2
        assert [p.source_id for p in store.load()] == ["pypi:other"]

    async def test_all_failed(self, registry, store):
        batch = await _manager(registry, store).remove_many(["brew:a", "brew:b"])
        assert batch.outcome is BatchOutcome.ALL_FAILED
        assert batch.failure_count == 2

    async def test_empty_batch_succeeds(self, registry, store):
        batch = await _manager(registry, store).install_many([])
        assert batch.outcome is BatchOutcome.ALL_SUCCEEDED
        assert batch.success_count == 0

    async def test_update_many(self, registry, store):
        npm = _provider(latest="9.9.9")
        batch = await _manager(registry, store, npm=npm).update_many(["npm:prettier"])
        assert batch.success_count == 1
        npm.install.assert_awaited_once_with("prettier", "9.9.9")


class TestBareNames:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("ripgrep", "cargo:ripgrep"),
            ("rg", "cargo:ripgrep"),
            ("python-black", "pypi:black"),
            ("BLACK", "pypi:black"),
            ("rip", None),
            ("unknown", None),
        ],
    )
    def test_resolve_bare_name(self, registry, store, name, expected):
        assert _manager(registry, store).resolve_bare_name(name) == expected

    async def test_bare_name_with_version(self, registry, store):
        cargo = _provider()
        batch = await _manager(registry, store, cargo=cargo).install_many(["rg@14.0.0"])
        assert batch.success_count == 1
        cargo.install.assert_awaited_once_with("ripgrep", "14.0.0")

    async def test_ambiguous_bare_name_lists_candidates(self, registry, store):
        batch = await _manager(registry, store).install_many(["rip"])
        message = batch.results[0].message
        assert "No unique package found matching 'rip'" in message
        assert "cargo:ripgrep" in message


class TestUpdateAll:
    async def test_only_outdated_packages_are_updated(self, registry, store):
        store.upsert("npm:prettier", "3.1.0")
        store.upsert("pypi:black", "24.2.0")
        store.upsert("cargo:ripgrep", "latest")
        npm, pypi, cargo = _provider(), _provider(), _provider()
        manager = _manager(registry, store, npm=npm, pypi=pypi, cargo=cargo)

        batch = await manager.update_all()

        assert batch.success_count == 2
        npm.install.assert_awaited_once_with("prettier", "3.2.0")
        cargo.install.assert_awaited_once_with("ripgrep", "14.1.0")
        pypi.install.assert_not_called()

    async def test_nothing_to_do(self, registry, store):
        store.upsert("pypi:black", "24.2.0")
        batch = await _manager(registry, store, pypi=_provider()).update_all()
        assert batch.success_count == 0
        assert batch.failure_count == 0


class TestSyncPackages:
    async def test_reinstalls_recorded_versions(self, registry, store):
        store.upsert("npm:prettier", "3.1.0")
        store.upsert("github:owner/tool", "main")
        npm, github = _provider(), _provider()
        manager = _manager(registry, store, npm=npm, github=github)

        batch = await manager.sync_packages()

        assert batch.success_count == 2
        npm.install.assert_awaited_once_with("prettier", "3.1.0")
        github.install.assert_awaited_once_with("owner/tool", "main")

    async def test_failures_use_source_id(self, registry, store):
        store.upsert("cargo:ripgrep", "14.1.0")
        batch = await _manager(registry, store).sync_packages()
        assert batch.failures == ["cargo:ripgrep"]


# ═══════════════════════════════════════════════════════════════════
# Queries and registry refresh
# ═══════════════════════════════════════════════════════════════════


class TestQueries:
    def test_provider_table(self):
        assert PackageManager.is_supported_provider("opam") is True
        assert PackageManager.is_supported_provider("brew") is False
        assert "generic" in PackageManager.available_providers()

    def test_registry_passthrough(self, registry, store):
        manager = _manager(registry, store)
        assert [e.name for e in manager.get_registry_data()] == ["black", "prettier", "ripgrep"]
        assert manager.get_latest_version("pkg:npm/prettier") == "3.2.0"
        assert manager.get_latest_version("npm:missing") == ""

    def test_corrupt_lock_reads_as_empty(self, registry, store, lock_path, caplog):
        lock_path.write_text("{not json")
        assert _manager(registry, store).get_local_packages() == []
        assert "Cannot read lock file" in caplog.text

    async def test_provider_health(self, registry, store):
        report = await _manager(registry, store, npm=_provider()).check_all_provider_health()
        assert report == [ProviderHealth(provider="npm", available=True)]


class TestRegistryRefresh:
    async def test_without_fetcher(self, registry, store):
        assert await _manager(registry, store).download_and_unzip_registry() is False

    async def test_fetch_error(self, registry, store):
        fetcher = MagicMock()
        fetcher.download_and_unzip = AsyncMock(side_effect=RegistryError("offline"))
        manager = _manager(registry, store, fetcher=fetcher)
        assert await manager.download_and_unzip_registry(force=True) is False
        fetcher.download_and_unzip.assert_awaited_once_with(True)

    async def test_success_reloads_catalog(self, store):
        reads: list[int] = []

        def reader() -> bytes:
            reads.append(1)
            return b"[]"

        registry = RegistryStore(reader=reader)
        registry.load()
        fetcher = MagicMock()
        fetcher.download_and_unzip = AsyncMock()
        manager = _manager(registry, store, fetcher=fetcher)

        assert await manager.download_and_unzip_registry() is True
        assert len(reads) == 2
