"""Tests for server.py -- composition root, lifespan and tool registration."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pkgtap.lockfile.store import LocalPackageStore
from pkgtap.manager import PackageManager
from pkgtap.providers.resolver import ProviderResolver
from pkgtap.registry.fetcher import RegistryFetcher
from pkgtap.registry.store import RegistryStore
from pkgtap.server import AppContext, app_lifespan, build_manager, mcp
from pkgtap.settings import Settings


@pytest.fixture
def refresh():
    with patch.object(
        PackageManager, "download_and_unzip_registry", new_callable=AsyncMock
    ) as mock_refresh:
        mock_refresh.return_value = True
        yield mock_refresh


class TestAppLifespan:
    async def test_yields_app_context(self, refresh):
        async with app_lifespan(MagicMock()) as ctx:
            assert isinstance(ctx, AppContext)
            assert isinstance(ctx.manager, PackageManager)
            assert isinstance(ctx.settings, Settings)
        refresh.assert_awaited_once()

    async def test_http_client_configuration(self, refresh):
        async with app_lifespan(MagicMock()) as ctx:
            client = ctx.http_client
            assert isinstance(client, httpx.AsyncClient)
            assert client.timeout.read == 30.0
            assert client.timeout.connect == 10.0
            assert client.follow_redirects is True
            transport = client._transport
            assert isinstance(transport, httpx.AsyncHTTPTransport)
            assert transport._pool._retries == 3

    async def test_client_closed_after_lifespan(self, refresh):
        async with app_lifespan(MagicMock()) as ctx:
            client = ctx.http_client
            assert not client.is_closed
        assert client.is_closed

    async def test_failed_refresh_still_starts(self, refresh, caplog):
        refresh.return_value = False
        with caplog.at_level(logging.WARNING, logger="pkgtap.server"):
            async with app_lifespan(MagicMock()) as ctx:
                assert ctx.manager is not None
        assert "Starting without a fresh registry" in caplog.text

    async def test_settings_come_from_environment(self, refresh, monkeypatch):
        monkeypatch.setenv("PKGTAP_REGISTRY_URL", "https://mirror.example.test/registry.zip")
        async with app_lifespan(MagicMock()) as ctx:
            assert ctx.settings.registry_url == "https://mirror.example.test/registry.zip"


class TestBuildManager:
    async def test_wires_shared_context(self, tmp_path):
        async with httpx.AsyncClient() as client:
            manager = build_manager(client, Settings())

        assert isinstance(manager.registry, RegistryStore)
        assert isinstance(manager.local_store, LocalPackageStore)
        assert isinstance(manager.resolver, ProviderResolver)
        assert isinstance(manager.fetcher, RegistryFetcher)
        ctx = manager.resolver.ctx
        assert ctx.registry is manager.registry
        assert ctx.downloader.http is client
        assert ctx.bin_dir == tmp_path / "home" / "bin"
        assert ctx.packages_root == tmp_path / "home" / "packages"
        assert ctx.platform_target


class TestToolRegistration:
    async def test_all_tools_registered(self):
        names = {tool.name for tool in await mcp.list_tools()}
        assert names == {
            "install_packages",
            "remove_packages",
            "update_packages",
            "list_installed",
            "list_registry",
            "sync_registry",
            "check_health",
        }

    async def test_annotations(self):
        tools = {tool.name: tool for tool in await mcp.list_tools()}
        assert tools["list_registry"].annotations.readOnlyHint is True
        assert tools["check_health"].annotations.readOnlyHint is True
        assert tools["install_packages"].annotations.destructiveHint is False
        assert tools["remove_packages"].annotations.destructiveHint is True
