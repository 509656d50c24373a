"""sync_registry tool -- refresh the registry and optionally reinstall locked packages."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from pkgtap.errors import PkgTapError
from pkgtap.tools._helpers import batch_to_dict, get_context, internal_error


async def sync_registry(
    ctx: Context,
    force: bool = False,
    reinstall: bool = False,
) -> dict[str, object]:
    """Download the latest package registry.

    The registry archive is cached for 24 hours by default; force=True
    downloads it regardless of age.

    Args:
        force: Ignore the cache age and download the registry now.
        reinstall: Also reinstall every package in the lock file at its
            recorded version, e.g. after copying the lock file to a new
            machine.

    Returns:
        success, the number of registry entries, and, with reinstall=True,
        the batch summary under "packages".
    """
    try:
        app = get_context(ctx)
        manager = app.manager
        refreshed = await manager.download_and_unzip_registry(force=force)
        result: dict[str, object] = {
            "success": refreshed,
            "registry_entries": len(manager.get_registry_data()),
            "message": (
                "Registry is up to date."
                if refreshed
                else "Registry refresh failed; using the copy on disk if there is one."
            ),
        }
        if reinstall:
            batch = await manager.sync_packages()
            result["packages"] = batch_to_dict(batch, "Reinstalled")
            result["success"] = refreshed and batch.failure_count == 0
        return result
    except PkgTapError as exc:
        return {"success": False, "message": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in sync_registry: {exc}")
        return internal_error("sync_registry", exc)
