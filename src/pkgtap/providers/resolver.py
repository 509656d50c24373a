"""Pick the right provider for a package."""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from pkgtap.errors import UnsupportedProviderError
from pkgtap.models import Provider, ProviderHealth
from pkgtap.providers.base import PackageProvider, ProviderContext
from pkgtap.providers.cargo import CargoProvider
from pkgtap.providers.composer import ComposerProvider
from pkgtap.providers.gem import GemProvider
from pkgtap.providers.generic import GenericProvider
from pkgtap.providers.golang import GolangProvider
from pkgtap.providers.luarocks import LuarocksProvider
from pkgtap.providers.npm import NpmProvider
from pkgtap.providers.nuget import NugetProvider
from pkgtap.providers.opam import OpamProvider
from pkgtap.providers.openvsx import OpenVsxProvider
from pkgtap.providers.pypi import PypiProvider
from pkgtap.providers.release import CodebergProvider, GitHubProvider, GitLabProvider

_PROVIDERS: dict[Provider, type] = {
    Provider.NPM: NpmProvider,
    Provider.PYPI: PypiProvider,
    Provider.GOLANG: GolangProvider,
    Provider.CARGO: CargoProvider,
    Provider.GITHUB: GitHubProvider,
    Provider.GITLAB: GitLabProvider,
    Provider.CODEBERG: CodebergProvider,
    Provider.GEM: GemProvider,
    Provider.COMPOSER: ComposerProvider,
    Provider.LUAROCKS: LuarocksProvider,
    Provider.NUGET: NugetProvider,
    Provider.OPAM: OpamProvider,
    Provider.OPENVSX: OpenVsxProvider,
    Provider.GENERIC: GenericProvider,
}

AVAILABLE_PROVIDERS: tuple[str, ...] = tuple(p.value for p in Provider)


def is_supported_provider(name: str) -> bool:
    return name in AVAILABLE_PROVIDERS


def available_providers() -> list[str]:
    """Supported provider names, in dispatch-table order."""
    return list(AVAILABLE_PROVIDERS)


@dataclass(frozen=True, slots=True)
class ProviderResolver:
    """Builds provider instances that share one ProviderContext."""

    ctx: ProviderContext

    def resolve(self, provider: str) -> PackageProvider:
        """Return the provider registered under ``provider``.

        Availability of the underlying tool is not checked here; the
        provider reports a missing tool from ``install`` instead.

        Raises:
            UnsupportedProviderError: If no provider has that name.
        """
        if not is_supported_provider(provider):
            raise UnsupportedProviderError(
                f"Unsupported provider '{provider}'. "
                f"Supported providers: {', '.join(AVAILABLE_PROVIDERS)}"
            )
        return _PROVIDERS[Provider(provider)](self.ctx)

    async def check_all_provider_health(self) -> list[ProviderHealth]:
        """Report, for every provider, whether its external tool is installed."""
        report: list[ProviderHealth] = []
        for name in AVAILABLE_PROVIDERS:
            provider = self.resolve(name)
            available = await provider.is_available()
            missing = ""
            if not available:
                missing = next(
                    (t for t in provider.required_tools if shutil.which(t) is None),
                    provider.required_tools[0] if provider.required_tools else "",
                )
            report.append(
                ProviderHealth(
                    provider=name,
                    available=available,
                    missing_tool=missing,
                    description=provider.description,
                )
            )
        return report
