"""list_installed / list_registry tools -- read-only views of local and remote state."""

from __future__ import annotations

from dataclasses import asdict

from mcp.server.fastmcp import Context

from pkgtap.errors import PkgTapError
from pkgtap.manager import check_update_available
from pkgtap.tools._helpers import get_context, internal_error

_DEFAULT_LIMIT = 50


async def list_installed(ctx: Context) -> list[dict[str, object]] | dict[str, object]:
    """List every package recorded in the pkgtap lock file.

    Returns:
        One entry per package with source_id, provider, package_id, the
        installed version, the registry's latest version and whether an
        update is available.
    """
    try:
        app = get_context(ctx)
        manager = app.manager
        rows: list[dict[str, object]] = []
        for package in manager.get_local_packages():
            latest = manager.get_latest_version(package.source_id)
            update_available, _ = check_update_available(package.version, latest)
            rows.append(
                asdict(package)
                | {
                    "provider": package.provider,
                    "package_id": package.package_id,
                    "latest_version": latest,
                    "update_available": update_available,
                }
            )
        return rows
    except PkgTapError as exc:
        return {"success": False, "message": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in list_installed: {exc}")
        return internal_error("list_installed", exc)


async def list_registry(
    ctx: Context,
    query: str = "",
    provider: str = "",
    limit: int = _DEFAULT_LIMIT,
) -> dict[str, object]:
    """Browse the package registry.

    Args:
        query: Case-insensitive text matched against the package name,
            aliases and package id. Empty lists everything.
        provider: Only show packages from this provider, e.g. "cargo".
        limit: Maximum number of entries to return (1-500, default 50).

    Returns:
        total matches and up to ``limit`` entries with name, version,
        description, source_id and whether it is installed.
    """
    try:
        app = get_context(ctx)
        manager = app.manager
        limit = max(1, min(limit, 500))
        needle = query.lower()
        installed = {p.source_id for p in manager.get_local_packages()}

        matches = []
        for entry in manager.get_registry_data():
            if provider and not entry.source.id.startswith(f"{provider}:"):
                continue
            haystack = [entry.name, entry.source.id, *entry.aliases]
            if needle and not any(needle in h.lower() for h in haystack):
                continue
            matches.append(entry)

        return {
            "total": len(matches),
            "packages": [
                {
                    "name": e.name,
                    "version": e.version,
                    "description": e.description,
                    "source_id": e.source.id,
                    "aliases": e.aliases,
                    "installed": e.source.id in installed,
                }
                for e in matches[:limit]
            ],
        }
    except PkgTapError as exc:
        return {"success": False, "message": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in list_registry: {exc}")
        return internal_error("list_registry", exc)
