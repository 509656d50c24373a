"""MCP server that installs developer tools from many package ecosystems."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from pkgtap import paths
from pkgtap.files.download import Downloader
from pkgtap.lockfile.store import LocalPackageStore
from pkgtap.manager import PackageManager
from pkgtap.providers.assets import detect_platform_target
from pkgtap.providers.base import ProviderContext
from pkgtap.providers.resolver import ProviderResolver
from pkgtap.registry.fetcher import RegistryFetcher
from pkgtap.registry.store import RegistryStore
from pkgtap.settings import Settings
from pkgtap.tools.health import check_health
from pkgtap.tools.install import install_packages
from pkgtap.tools.list import list_installed, list_registry
from pkgtap.tools.remove import remove_packages
from pkgtap.tools.sync import sync_registry
from pkgtap.tools.update import update_packages

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppContext:
    """Shared state across all tool invocations."""

    http_client: httpx.AsyncClient
    settings: Settings
    manager: PackageManager


def build_manager(http_client: httpx.AsyncClient, settings: Settings) -> PackageManager:
    """Wire the stores, providers and fetcher around one HTTP client."""
    downloader = Downloader(http_client)
    registry = RegistryStore()
    provider_ctx = ProviderContext(
        packages_root=paths.packages_path(),
        bin_dir=paths.bin_path(),
        registry=registry,
        downloader=downloader,
        platform_target=detect_platform_target(),
    )
    return PackageManager(
        registry=registry,
        local_store=LocalPackageStore(),
        resolver=ProviderResolver(provider_ctx),
        fetcher=RegistryFetcher(downloader, settings),
    )


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage shared adapter lifecycle -- the composition root."""
    settings = Settings.from_env()
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(30.0, connect=10.0),
        follow_redirects=True,
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        transport=httpx.AsyncHTTPTransport(retries=3),
    ) as http_client:
        manager = build_manager(http_client, settings)
        if not await manager.download_and_unzip_registry():
            logger.warning("Starting without a fresh registry; installs may lack metadata")
        yield AppContext(http_client=http_client, settings=settings, manager=manager)


mcp = FastMCP(
    "pkgtap",
    instructions=(
        "pkgtap installs command-line developer tools (language servers, "
        "formatters, linters, CLIs) from npm, PyPI, Go, Cargo, RubyGems, "
        "Composer, LuaRocks, NuGet, opam, Open VSX, GitHub/GitLab/Codeberg "
        "releases and plain downloads, and links their executables into one "
        "bin directory.\n\n"
        "### Package ids\n"
        "- Form: 'provider:package[@version]', e.g. 'npm:prettier@3.2.0', "
        "'cargo:ripgrep', 'github:BurntSushi/ripgrep'.\n"
        "- A bare name such as 'ripgrep' is looked up in the registry.\n\n"
        "### Recommended workflow\n"
        "1. **list_registry** with a query to find the right package id.\n"
        "2. **check_health** if unsure whether the provider's tool (npm, "
        "cargo, go, ...) is installed.\n"
        "3. **install_packages** with one or more ids.\n"
        "4. **list_installed** to see versions and available updates.\n"
        "5. **update_packages** with no ids updates everything outdated.\n"
        "\n"
        "Tell the user to add the bin directory reported by check_health to "
        "their PATH if the installed commands are not found."
    ),
    lifespan=app_lifespan,
)

# ─── Read-only tools ──────────────────────────────────────────
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(list_installed)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(list_registry)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(check_health)

# ─── Mutating tools ───────────────────────────────────────────
mcp.tool(annotations=ToolAnnotations(destructiveHint=False))(install_packages)
mcp.tool(annotations=ToolAnnotations(destructiveHint=False))(update_packages)
mcp.tool(annotations=ToolAnnotations(destructiveHint=False))(sync_registry)
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(remove_packages)
